"""
HTTP routes for thread and reply resources.
"""

from __future__ import annotations

import json
import logging
from typing import Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from messageboard.db import DeleteOutcome, RecordStore
from messageboard.dependencies import get_record_store
from messageboard.errors import ThreadNotFoundError
from messageboard.sanitizer import project_thread
from messageboard.schemas import (
    CreateReplyPayload,
    CreateThreadPayload,
    DeleteReplyPayload,
    DeleteThreadPayload,
    ErrorResponse,
    PublicThread,
    ReportReplyPayload,
    ReportThreadPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REPORTED = "reported"
SUCCESS = "success"
INCORRECT_PASSWORD = "incorrect password"

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

INVALID_REQUEST = {400: {"model": ErrorResponse}}
THREAD_LOOKUP_ERRORS = {**INVALID_REQUEST, 404: {"model": ErrorResponse}}

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parsed_body(model: Type[PayloadT]):
    """
    Dependency factory: validate the request body against ``model``.

    Browsers posting the board's HTML forms send form data, API clients send
    JSON; both are accepted.
    """

    async def dependency(request: Request) -> PayloadT:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()
            data = {
                key: value for key, value in form.items() if isinstance(value, str)
            }
        else:
            raw = await request.body()
            try:
                data = json.loads(raw) if raw else {}
            except ValueError as exc:
                raise RequestValidationError(
                    [
                        {
                            "type": "json_invalid",
                            "loc": ("body",),
                            "msg": "Request body is not valid JSON",
                            "input": None,
                        }
                    ]
                ) from exc
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors()) from exc

    return dependency


@router.post(
    "/threads/{board}", response_model=PublicThread, responses=INVALID_REQUEST
)
def create_thread(
    board: str,
    payload: CreateThreadPayload = Depends(parsed_body(CreateThreadPayload)),
    store: RecordStore = Depends(get_record_store),
):
    thread = store.create_thread(board, payload.text, payload.delete_password)
    logger.info("Created thread %s on board %s", thread.thread_id, board)
    # A new thread has no replies, so the full view is also the short one.
    return project_thread(thread, full_replies=True)


@router.get("/threads/{board}", response_model=list[PublicThread])
def list_threads(board: str, store: RecordStore = Depends(get_record_store)):
    """Most recently bumped threads of the board, each with a reply preview."""
    return [
        project_thread(thread, full_replies=False)
        for thread in store.list_threads(board)
    ]


@router.put(
    "/threads/{board}", response_class=PlainTextResponse, responses=INVALID_REQUEST
)
def report_thread(
    board: str,
    payload: ReportThreadPayload = Depends(parsed_body(ReportThreadPayload)),
    store: RecordStore = Depends(get_record_store),
):
    # Same answer whether or not the thread exists.
    store.report_thread(payload.thread_id)
    return PlainTextResponse(REPORTED)


@router.delete(
    "/threads/{board}", response_class=PlainTextResponse, responses=INVALID_REQUEST
)
def delete_thread(
    board: str,
    payload: DeleteThreadPayload = Depends(parsed_body(DeleteThreadPayload)),
    store: RecordStore = Depends(get_record_store),
):
    thread = store.get_thread(payload.thread_id)
    if not thread or thread.delete_password != payload.delete_password:
        logger.info("Rejected delete of thread %s on board %s", payload.thread_id, board)
        return PlainTextResponse(INCORRECT_PASSWORD)
    if not store.delete_thread(board, thread.thread_id):
        logger.info("Thread %s is not on board %s", thread.thread_id, board)
        return PlainTextResponse(INCORRECT_PASSWORD)
    logger.info("Deleted thread %s on board %s", thread.thread_id, board)
    return PlainTextResponse(SUCCESS)


@router.post(
    "/replies/{board}", response_model=PublicThread, responses=THREAD_LOOKUP_ERRORS
)
def create_reply(
    board: str,
    payload: CreateReplyPayload = Depends(parsed_body(CreateReplyPayload)),
    store: RecordStore = Depends(get_record_store),
):
    thread = store.add_reply(payload.thread_id, payload.text, payload.delete_password)
    if not thread:
        raise ThreadNotFoundError(payload.thread_id)
    return project_thread(thread, full_replies=True)


@router.get(
    "/replies/{board}", response_model=PublicThread, responses=THREAD_LOOKUP_ERRORS
)
def get_thread_with_replies(
    board: str,
    thread_id: str = Query(..., min_length=1),
    store: RecordStore = Depends(get_record_store),
):
    thread = store.get_thread(thread_id)
    if not thread:
        raise ThreadNotFoundError(thread_id)
    return project_thread(thread, full_replies=True)


@router.put(
    "/replies/{board}", response_class=PlainTextResponse, responses=INVALID_REQUEST
)
def report_reply(
    board: str,
    payload: ReportReplyPayload = Depends(parsed_body(ReportReplyPayload)),
    store: RecordStore = Depends(get_record_store),
):
    store.report_reply(payload.thread_id, payload.reply_id)
    return PlainTextResponse(REPORTED)


@router.delete(
    "/replies/{board}", response_class=PlainTextResponse, responses=INVALID_REQUEST
)
def delete_reply(
    board: str,
    payload: DeleteReplyPayload = Depends(parsed_body(DeleteReplyPayload)),
    store: RecordStore = Depends(get_record_store),
):
    outcome = store.delete_reply(
        payload.thread_id, payload.reply_id, payload.delete_password
    )
    if outcome is not DeleteOutcome.SUCCESS:
        logger.info(
            "Rejected delete of reply %s in thread %s (%s)",
            payload.reply_id,
            payload.thread_id,
            outcome.value,
        )
        return PlainTextResponse(INCORRECT_PASSWORD)
    logger.info("Deleted reply %s in thread %s", payload.reply_id, payload.thread_id)
    return PlainTextResponse(SUCCESS)
