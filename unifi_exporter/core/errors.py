"""Errors that can end a scrape.

Every failure in the fetch → decode → translate → render pipeline is
one of four kinds.  None of them is retried inside the exporter: the
/metrics handler turns any of them into a 503, and Prometheus retries
on its next scrape interval.

  UpstreamUnavailable: the controller could not be reached in time
                       (connect/read timeout, refused, TLS handshake,
                       unexpected HTTP status)
  AuthRejected:        the controller answered 401/403 to our token
  SchemaMismatch:      the controller answered, but not in a shape we
                       can decode
  RenderFailure:       the sample set broke an exposition-format rule;
                       this is a bug in the translator, never an
                       upstream problem

The `kind` string is what ends up in the 503 body and in the
unifi_exporter_scrape_errors_total{kind=...} counter.  The message
carries the detail and only goes to the logs.
"""

from __future__ import annotations


class ExporterError(Exception):
    kind = "exporter_error"


class UpstreamUnavailable(ExporterError):
    kind = "upstream_unavailable"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthRejected(ExporterError):
    kind = "auth_rejected"

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class SchemaMismatch(ExporterError):
    kind = "schema_mismatch"


class RenderFailure(ExporterError):
    kind = "render_failure"
