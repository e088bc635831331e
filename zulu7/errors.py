"""
Zulu7 — Error Taxonomy
───────────────────────
  400  BadRequest               missing / invalid query parameter
  404  NotFound                 unknown published config
  500  UpstreamError            third party failed or sent junk
  500  RedirectLimitExceeded    Drive download bounced more than MAX_REDIRECTS times
  500  DriveInterstitialError   Drive answered with its HTML warning page

Handlers raise these; the app turns them into `{"error": message}` JSON,
or plain text for the byte-streaming endpoints.
Health checks never raise; they report "down" instead.
"""


class Zulu7Error(Exception):
    http_status = 500

    def __init__(self, message: str, http_status: int = None):
        super().__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status

    def to_dict(self) -> dict:
        return {"error": self.message}


class BadRequest(Zulu7Error):
    http_status = 400


class NotFound(Zulu7Error):
    http_status = 404


class UpstreamError(Zulu7Error):
    http_status = 500


class RedirectLimitExceeded(UpstreamError):
    def __init__(self, hops: int):
        super().__init__("Too many redirects")
        self.hops = hops


class DriveInterstitialError(UpstreamError):
    def __init__(self):
        super().__init__("Hit GDrive HTML warning page - keyless bypass failed.")
