class WteError(Exception):
    """Base exception for webnovel scraping and packaging errors."""
    pass

class SourceNotFound(WteError):
    """Raised when no driver is registered for a URL."""
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Scraper not found for url {url}")

class ExtractionError(WteError):
    """Raised when a driver cannot find the markup it expects."""
    def __init__(self, stage: str, url: str, reason: str = ""):
        self.stage = stage
        self.url = url
        msg = f"Could not extract {stage} from {url}"
        super().__init__(f"{msg}: {reason}" if reason else msg)

class FetchFailure(WteError):
    """Raised when a chapter could not be fetched within the retry budget."""
    def __init__(self, url: str, attempts: int = 0):
        self.url = url
        self.attempts = attempts
        super().__init__(f"Failed to scrape chapter {url}")

class ParseFailure(WteError):
    """Raised when a chapter could not be sanitized within the retry budget."""
    def __init__(self, url: str, attempts: int = 0):
        self.url = url
        self.attempts = attempts
        super().__init__(f"Failed to parse chapter {url}")

class InvalidArchiveError(WteError):
    """Raised when an EPUB has no valid embedded snapshot."""
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        msg = f"Epub isn't a wte-managed epub ({path})"
        super().__init__(f"{msg}: {reason}" if reason else msg)

class InvalidInputError(WteError):
    """Raised when a flat JSON snapshot cannot be read or validated."""
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        msg = f"Invalid JSON format at path {path}"
        super().__init__(f"{msg}: {reason}" if reason else msg)

class ArchiveWriteError(WteError):
    """Raised when the output package cannot be written."""
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        msg = f"Could not write epub to {path}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
