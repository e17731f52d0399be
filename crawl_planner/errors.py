"""Exception types raised by the crawl planner."""


class CrawlPlannerError(Exception):
    """Base class for every error raised by this package."""


class InvalidAreaError(CrawlPlannerError):
    """The area descriptor is contradictory or cannot be resolved. Fatal."""


class InvalidSearchTermError(CrawlPlannerError):
    """A search term is blank or not a string. The term is skipped."""


class StateStoreError(CrawlPlannerError):
    """A persisted blob exists but cannot be read back."""


class CacheUnavailableError(CrawlPlannerError):
    """The persisted places cache is unreadable. The run starts with a cold cache."""


class BudgetPersistenceError(CrawlPlannerError):
    """Persisted crawl budget counts are unreadable. Counting restarts from zero."""


class QueuePushError(CrawlPlannerError):
    """A request could not be pushed to the queue after all retries."""
