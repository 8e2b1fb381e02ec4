"""Per-request pipeline: auth, access log, headers, body, accounting."""

from surl.bootstrap.config import SERVER_NAME
from surl.domain.http_types import HttpRequest
from surl.pipeline.access_log import access_logged
from surl.pipeline.auth import enforce_basic_auth
from surl.pipeline.body import write_body
from surl.pipeline.headers import apply_headers
from surl.pipeline.io import ResponseWriter
from surl.transport.context import WorkerContext


def handle_request(
    request: HttpRequest,
    writer: ResponseWriter,
    context: WorkerContext,
    client: str,
) -> None:
    """Answer ``request`` with the configured response.

    Requests rejected by the auth gate are neither access logged nor
    counted. Every other request is counted exactly once, including one
    whose body stage aborts; ``RequestAborted`` propagates to the worker,
    which then drops the connection.
    """
    config = context.config
    if not enforce_basic_auth(request, writer, config.credentials, client):
        return

    with access_logged(
        request,
        writer,
        client,
        dump=config.dump_enabled,
        include_body=config.dump_body,
    ) as outcome:
        try:
            apply_headers(writer.headers, config.headers, SERVER_NAME)
            write_body(writer, request, config, outcome)
        finally:
            context.accountant.record()
