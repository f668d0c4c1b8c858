class OCRError(Exception):
    """Raised when text recognition on a receipt image fails."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)
