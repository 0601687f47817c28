"""User-facing error kinds raised inside the navigation core.

Every NavigationError carries the single message shown to the user when
the error reaches an event handler boundary. Handlers catch the base class;
nothing here is allowed to escape into the transport layer.
"""


class NavigationError(Exception):
    """Base class for errors converted into one user-visible message."""

    user_message = "❌ Error occurred"

    def __init__(self, user_message: str | None = None) -> None:
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.user_message)


class EmptyListing(NavigationError):
    user_message = "⚠ Nothing here yet."


class SessionExpired(NavigationError):
    user_message = "⌛ This menu has expired. Send /start to begin again."


class InvalidSelection(NavigationError):
    user_message = "❌ Invalid selection."


class DeliveryInProgress(NavigationError):
    user_message = (
        "⏳ Files are still being sent. Wait for them to finish, "
        "or send /start to cancel."
    )


class DeliveryStopping(DeliveryInProgress):
    """A reset cancelled the delivery; its last upload is still finishing."""

    user_message = "⏳ Stopping the previous download. Try again in a few seconds."


class TransientSendFailure(NavigationError):
    """A single file or message could not be sent; the batch continues."""

    user_message = "⚠ A file could not be sent."


class DeliveryCancelled(NavigationError):
    """The session was reset mid-delivery. Never shown to the user."""

    user_message = ""
