class MockHttpException(Exception):
    """Base class for errors raised by the mock request/response pair."""


class HeaderMutationAfterSend(MockHttpException):
    """
    Exception raised when response headers are changed after they were committed.

    Headers count as committed once write_head, write_continue or an effective end
    has run. The static methods build the two variants with their error codes.
    """

    @staticmethod
    def set_header() -> "HeaderMutationAfterSend":
        """set_header was called after the headers were sent."""
        return HeaderMutationAfterSend(
            "error-mockhttp-1000 Can't set headers after they are sent."
        )

    @staticmethod
    def remove_header() -> "HeaderMutationAfterSend":
        """remove_header was called after the headers were sent."""
        return HeaderMutationAfterSend(
            "error-mockhttp-1001 Can't remove headers after they are sent."
        )
