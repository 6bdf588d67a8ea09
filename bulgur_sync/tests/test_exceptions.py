from bulgur_sync.exceptions import (
    BError,
    ErrorKind,
    bad_credentials,
    load_folder_failed,
    network_failure,
    server_error,
    unauthorized,
)


def test_error_code_defaults_to_kind_value() -> None:
    error = bad_credentials()

    assert error.kind is ErrorKind.BAD_CREDENTIALS
    assert error.code == "login_bad"


def test_error_code_can_be_overridden() -> None:
    error = unauthorized(code="load_folder_unauthorized")

    assert error.kind is ErrorKind.UNAUTHORIZED
    assert error.code == "load_folder_unauthorized"


def test_to_dict_returns_display_triple() -> None:
    error = load_folder_failed("testuser/docs", "418")

    assert error.to_dict() == {
        "code": "load_folder_failed",
        "title": "Failed to load folder",
        "description": "Unable to load testuser/docs: 418",
    }


def test_str_includes_context() -> None:
    error = network_failure(method="GET", url="/storage/")

    assert "[network_failure]" in str(error)
    assert "method='GET'" in str(error)
    assert "url='/storage/'" in str(error)


def test_errors_compare_by_value() -> None:
    assert server_error(502, "Bad Gateway") == server_error(502, "Bad Gateway")
    assert server_error(502) != server_error(503)
    assert len({bad_credentials(), bad_credentials()}) == 1


def test_context_is_a_copy() -> None:
    error = BError(ErrorKind.UNEXPECTED_ERROR, "title", "description", detail="x")

    error.context["detail"] = "changed"

    assert error.context == {"detail": "x"}


def test_error_is_raisable() -> None:
    try:
        raise bad_credentials()
    except BError as e:
        assert e.title == "Bad username or password"
