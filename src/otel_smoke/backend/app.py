"""Fake telemetry backend: accepts OTLP/HTTP trace exports and buffers them for readback."""

import gzip
import logging
import threading

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from google.protobuf.json_format import MessageToDict, Parse, ParseError
from google.protobuf.message import DecodeError as ProtobufDecodeError
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import (
    ExportTraceServiceRequest,
    ExportTraceServiceResponse,
)

from otel_smoke.logging import log_event

logger = logging.getLogger(__name__)

PROTOBUF_CONTENT_TYPE = "application/x-protobuf"
JSON_CONTENT_TYPE = "application/json"


class RequestStore:
    """Thread-safe, arrival-ordered buffer of received export requests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._requests: list[ExportTraceServiceRequest] = []

    def add(self, request: ExportTraceServiceRequest) -> None:
        with self._lock:
            self._requests.append(request)

    def snapshot(self) -> list[ExportTraceServiceRequest]:
        with self._lock:
            return list(self._requests)

    def clear(self) -> int:
        with self._lock:
            dropped = len(self._requests)
            self._requests = []
        return dropped


store = RequestStore()

app = FastAPI(title="Fake Telemetry Backend")


def _parse_export_request(body: bytes, content_type: str) -> ExportTraceServiceRequest:
    request = ExportTraceServiceRequest()
    if content_type == PROTOBUF_CONTENT_TYPE:
        request.ParseFromString(body)
    else:
        Parse(body, request, ignore_unknown_fields=True)
    return request


@app.post("/v1/traces")
async def receive_traces(request: Request):
    """Endpoint for OTLP traces (supports Protobuf and JSON)."""
    content_type = request.headers.get("content-type", "")
    base_content_type = content_type.split(";")[0].strip().lower()
    if base_content_type not in (PROTOBUF_CONTENT_TYPE, JSON_CONTENT_TYPE):
        msg = f"Unsupported content-type: '{content_type}'"
        logger.warning(msg)
        return Response(content=msg, status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE)

    body = await request.body()
    if request.headers.get("content-encoding", "").lower() == "gzip":
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError) as e:
            logger.error(f"Failed to decompress gzip body: {e}")
            return Response(
                content=f"Decompression error: {e}", status_code=status.HTTP_400_BAD_REQUEST
            )

    try:
        export_request = _parse_export_request(body, base_content_type)
    except (ParseError, ProtobufDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Failed to parse OTLP payload: {e}")
        return Response(
            content=f"Invalid OTLP payload: {e}", status_code=status.HTTP_400_BAD_REQUEST
        )

    store.add(export_request)
    log_event(
        "export_request_received",
        component="backend",
        level=logging.DEBUG,
        content_type=base_content_type,
        resource_spans=len(export_request.resource_spans),
    )

    reply = ExportTraceServiceResponse()
    if base_content_type == PROTOBUF_CONTENT_TYPE:
        return Response(content=reply.SerializeToString(), media_type=PROTOBUF_CONTENT_TYPE)
    return JSONResponse(content=MessageToDict(reply))


@app.get("/get-requests")
async def get_requests():
    """Every buffered export request, oldest first."""
    return JSONResponse(content=[MessageToDict(r) for r in store.snapshot()])


@app.get("/clear-requests")
async def clear_requests():
    dropped = store.clear()
    log_event(
        "export_requests_cleared", level=logging.DEBUG, component="backend", dropped=dropped
    )
    return PlainTextResponse("OK")


@app.get("/health")
async def health():
    return PlainTextResponse("OK")
