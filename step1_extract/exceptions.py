"""Exceptions raised while turning a raw document into line items"""


class StructuralExtractionError(Exception):
    """The document could not be read into any lines at all (corrupt or empty payload)"""

    def __init__(self, message: str, vendor: str = ''):
        super().__init__(message)
        self.vendor = vendor
