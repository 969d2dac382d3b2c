class CancellationToken:
    """
    One-shot flag checked after each await in confirm().
    Cancelling does not interrupt provider calls; it only makes late results get dropped.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
