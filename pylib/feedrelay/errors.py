'''Error taxonomy. Poll-cycle errors are caught per subscription; subscribe/unsubscribe errors go to the caller.'''


class FeedRelayError(Exception):
    '''Base for all feedrelay errors.'''


class ParseError(FeedRelayError):
    '''Malformed feed document, or a document of the wrong format.'''

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class UnknownFormat(FeedRelayError):
    '''Raw content parsed as neither RSS 2.0 nor Atom.'''


class FetchError(FeedRelayError):
    '''Network or HTTP failure. 304 Not Modified is not an error.'''

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(f'{url}: {message}')
        self.url = url
        self.status = status


class InvalidFeedURL(FeedRelayError, ValueError):
    '''URL is not an absolute http(s) URL.'''


class DuplicateSubscription(FeedRelayError):
    '''Channel is already subscribed to that URL.'''

    def __init__(self, channel: str, url: str) -> None:
        super().__init__(f'channel {channel} is already subscribed to {url}')
        self.channel = channel
        self.url = url


class NotSubscribed(FeedRelayError):
    '''No subscription matches the given URL or id.'''

    def __init__(self, channel: str, identifier: str | int) -> None:
        super().__init__(f'channel {channel} has no subscription {identifier!r}')
        self.channel = channel
        self.identifier = identifier


class OversizedPayloadDropped(FeedRelayError):
    '''A single payload exceeded the batch budget and its text could not be trimmed to fit.'''

    def __init__(self, payload, encoded_size: int, max_size: int) -> None:
        super().__init__(
            f'payload {payload.title!r} encodes to {encoded_size} runes (max {max_size}); text too short to trim'
        )
        self.payload = payload
        self.encoded_size = encoded_size
        self.max_size = max_size


class StoreError(FeedRelayError):
    '''Persisted subscription record could not be read or written.'''


class DeliveryError(FeedRelayError):
    '''Delivery sink rejected a batch.'''


class ConfigError(FeedRelayError, ValueError):
    '''Environment variable holds a value of the wrong type.'''

    def __init__(self, name: str, value: str, expected: str) -> None:
        super().__init__(f'{name}={value!r}: expected {expected}')
        self.name = name
        self.value = value
