from .transfer import Transfer, TransferFile  # noqa: F401
