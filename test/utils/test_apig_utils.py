import json

from bizlevel_backend.models.level_models import MissingItemsModel
from bizlevel_backend.progress.errors import (
    AlreadyCompletedError,
    ConcurrentModificationError,
    GateNotSatisfiedError,
    LevelLockedError,
    NotFoundError,
    StoreUnavailableError,
)
from bizlevel_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    create_progress_error_response,
    format_lambda_response,
    get_allowed_origin,
    get_event_body,
    get_method,
    get_path,
    get_query_string_parameters,
    get_user_id_from_event,
)
from bizlevel_backend.utils.base_types import LevelId


def test_get_event_body_1() -> None:
    event_body = {"body": "hello everyone"}
    assert get_event_body(event_body) == b"hello everyone"


def test_get_event_body_2() -> None:
    event_body = {
        "body": "aGVsbG8gZXZlcnlvbmU=",
        "isBase64Encoded": True,
    }
    assert get_event_body(event_body) == b"hello everyone"


def test_get_method_and_path() -> None:
    event = {"requestContext": {"http": {"method": "PUT", "path": "/progress/videos"}}}
    assert get_method(event) == "PUT"
    assert get_path(event) == "/progress/videos"

    assert get_method({"requestContext": {}}) == "UNKNOWN"
    assert get_path({"requestContext": {}}) == ""


def test_get_query_string_parameters() -> None:
    assert get_query_string_parameters({"queryStringParameters": {"levelId": "level-1"}}) == {"levelId": "level-1"}
    assert get_query_string_parameters({"queryStringParameters": None}) == {}


def test_get_user_id_from_event_1() -> None:
    event = {"requestContext": {"authorizer": {"lambda": {"email": "aida@example.com", "sub": "1234"}}}}

    assert get_user_id_from_event(event) == "1234"


def test_get_user_id_from_event_2() -> None:
    event = {"requestContext": {}}

    assert get_user_id_from_event(event) is None


def test_get_allowed_origin() -> None:
    assert get_allowed_origin({}) == "*"
    assert get_allowed_origin({"headers": {"origin": "http://localhost:5173"}}) == "http://localhost:5173"
    assert get_allowed_origin({"headers": {"origin": "https://bizlevel.app"}}) == "https://bizlevel.app"
    assert get_allowed_origin({"headers": {"origin": "https://www.bizlevel.app"}}) == "https://www.bizlevel.app"
    assert get_allowed_origin({"headers": {"origin": "https://example.github.io"}}) == "https://example.github.io"
    assert get_allowed_origin({"headers": {"origin": "https://bizlevel.app.evil.com"}}) == "null"


def test_format_lambda_response_1() -> None:
    ret = format_lambda_response(200, {"hey": "there"})
    assert ret["statusCode"] == 200
    assert len(ret["headers"]) == 4
    assert ret["headers"]["Content-Type"] == "application/json"
    assert ret["headers"]["Access-Control-Allow-Origin"] == "*"
    assert ret["headers"]["Access-Control-Allow-Methods"] == "OPTIONS,GET,PUT,POST,DELETE"
    assert ret["body"] == '{"hey": "there"}'


def test_format_lambda_response_2() -> None:
    ret = format_lambda_response(200, None, additional_headers={"hi": "you"})
    assert len(ret["headers"]) == 5
    assert ret["headers"]["hi"] == "you"
    assert ret["body"] is None


def test_format_lambda_response_3() -> None:
    ret = format_lambda_response(200, {"hey": "there"}, event={"headers": {"origin": "evil.com"}})
    assert ret["headers"]["Access-Control-Allow-Origin"] == "null"


def test_create_error_response_1() -> None:
    response = create_error_response(ErrorCode.VALIDATION_ERROR)

    assert response["statusCode"] == 400
    body = json.loads(response["body"])
    assert body["message"] == "Invalid request data"
    assert body["errorCode"] == "VALIDATION_ERROR"
    assert "details" not in body


def test_create_error_response_2() -> None:
    details = [{"loc": ["score"], "msg": "Input should be less than or equal to 100", "type": "less_than_equal"}]
    response = create_error_response(ErrorCode.VALIDATION_ERROR, "Request validation failed", details=details)

    body = json.loads(response["body"])
    assert body["message"] == "Request validation failed"
    assert body["details"] == details


def test_create_error_response_statuses() -> None:
    test_cases = [
        (ErrorCode.VALIDATION_ERROR, 400),
        (ErrorCode.AUTHENTICATION_FAILED, 401),
        (ErrorCode.AUTHORIZATION_FAILED, 403),
        (ErrorCode.LEVEL_LOCKED, 403),
        (ErrorCode.RESOURCE_NOT_FOUND, 404),
        (ErrorCode.METHOD_NOT_ALLOWED, 405),
        (ErrorCode.GATE_NOT_SATISFIED, 409),
        (ErrorCode.INTERNAL_ERROR, 500),
        (ErrorCode.STORE_UNAVAILABLE, 503),
    ]

    for error_code, expected_status in test_cases:
        response = create_error_response(error_code)
        assert response["statusCode"] == expected_status
        body = json.loads(response["body"])
        assert body["errorCode"] == error_code.name
        assert body["message"] == error_code.default_message


def test_progress_error_not_found() -> None:
    response = create_progress_error_response(NotFoundError("artifact", "a-9"))

    assert response["statusCode"] == 404
    assert json.loads(response["body"])["message"] == "Unknown artifact id: a-9"


def test_progress_error_locked_is_checked_before_gate() -> None:
    response = create_progress_error_response(LevelLockedError(LevelId("level-2")))

    assert response["statusCode"] == 403
    body = json.loads(response["body"])
    assert body["errorCode"] == "LEVEL_LOCKED"
    assert body["details"] == {"levelId": "level-2"}


def test_progress_error_gate() -> None:
    error = GateNotSatisfiedError(LevelId("level-1"), MissingItemsModel(artifacts=["a1-1"]))

    response = create_progress_error_response(error, event={"headers": {"origin": "https://bizlevel.app"}})

    assert response["statusCode"] == 409
    assert response["headers"]["Access-Control-Allow-Origin"] == "https://bizlevel.app"
    body = json.loads(response["body"])
    assert body["details"] == {"levelId": "level-1", "missing": {"videos": [], "tests": [], "artifacts": ["a1-1"]}}


def test_progress_error_store_unavailable() -> None:
    assert create_progress_error_response(StoreUnavailableError("down"))["statusCode"] == 503


def test_progress_error_unmapped() -> None:
    assert create_progress_error_response(AlreadyCompletedError(LevelId("level-1")))["statusCode"] == 500
    assert create_progress_error_response(ConcurrentModificationError("raced"))["statusCode"] == 500
