# hostwarden/notifier.py
from .logger import format_fields, log


class Notifier:
    @staticmethod
    def alert_console(msg):
        log(f"ALERT | {msg}")

    @staticmethod
    def alert_sound():
        try:
            import winsound
            winsound.Beep(1000, 250)
        except (ImportError, RuntimeError):
            print("\a")

    @staticmethod
    def alert_security(event, **details):
        """
        Raised for integrity failures (e.g. a payload whose hash does not
        match its manifest), which may indicate tampering rather than a
        corrupted transfer.
        """
        Notifier.alert_console(format_fields(f"security:{event}", **details))
        Notifier.alert_sound()
