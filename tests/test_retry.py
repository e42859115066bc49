from __future__ import annotations

from dataclasses import dataclass, field

from fundingwish import retry

# Constants for test expectations
FIRST_SUCCESS_ATTEMPT = 2  # transient once then success
EXPECTED_RETRY_COUNT = 2  # total attempts when one retry occurs


@dataclass
class _Resp:
    status_code: int
    text: str = ""
    headers: dict[str, str] = field(default_factory=dict)


def _no_sleep(_: float) -> None:
    return None


def test_is_transient_tokens():
    assert retry.is_transient('Rate Limit exceeded')
    assert retry.is_transient('secondary rate limit triggered')
    assert retry.is_transient('ABUSE DETECTION mechanism')
    assert not retry.is_transient('some other error')


def test_is_transient_response_requires_status():
    assert retry.is_transient_response(_Resp(429, headers={"Retry-After": "1"}))
    assert retry.is_transient_response(_Resp(403, "You have exceeded a secondary rate limit"))
    assert not retry.is_transient_response(_Resp(403, "Resource not accessible by integration"))
    assert not retry.is_transient_response(_Resp(500, "rate limit"))


def test_bare_429_is_always_transient():
    assert retry.is_transient_response(_Resp(429))
    assert retry.is_transient_response(_Resp(429, "Too Many Requests"))
    assert not retry.is_transient_response(_Resp(403))


def test_bare_429_is_retried():
    responses = [_Resp(429), _Resp(200, "ok")]
    slept: list[float] = []
    cfg = retry.RetryConfig(attempts=3, base_sleep=0.01)
    result = retry.run_with_retries(lambda: responses.pop(0), cfg=cfg, sleep=slept.append)
    assert result.status_code == 200
    assert len(slept) == 1


def test_run_with_retries_transient_then_success():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        if len(attempts) < FIRST_SUCCESS_ATTEMPT:
            return _Resp(429, "rate limit exceeded temporarily")
        return _Resp(200, "ok")

    cfg = retry.RetryConfig(attempts=3, base_sleep=0.01)
    result = retry.run_with_retries(fn, cfg=cfg, sleep=_no_sleep)
    assert result.status_code == 200
    assert len(attempts) == EXPECTED_RETRY_COUNT


def test_run_with_retries_non_transient_returned_unchanged():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        return _Resp(422, '{"message": "Reference already exists"}')

    result = retry.run_with_retries(fn, cfg=retry.RetryConfig(attempts=4, base_sleep=0.01))
    assert result.status_code == 422
    assert len(attempts) == 1


def test_run_with_retries_transient_exhausts():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        return _Resp(403, 'secondary rate limit inner error')

    cfg = retry.RetryConfig(attempts=3, base_sleep=0.0)
    result = retry.run_with_retries(fn, cfg=cfg, sleep=_no_sleep)
    assert result.status_code == 403
    assert len(attempts) == cfg.attempts


def test_retry_after_header_drives_sleep(monkeypatch):
    monkeypatch.delenv("FUNDINGWISH_RETRY_MAX_SLEEP", raising=False)
    slept: list[float] = []
    responses = [_Resp(429, headers={"Retry-After": "7"}), _Resp(200)]

    retry.run_with_retries(
        lambda: responses.pop(0), cfg=retry.RetryConfig(attempts=2), sleep=slept.append
    )
    assert slept == [7.0]


def test_max_sleep_cap(monkeypatch):
    monkeypatch.setenv("FUNDINGWISH_RETRY_MAX_SLEEP", "2")
    slept: list[float] = []
    responses = [_Resp(429, "wait 60 seconds"), _Resp(200)]

    retry.run_with_retries(
        lambda: responses.pop(0), cfg=retry.RetryConfig(attempts=2), sleep=slept.append
    )
    assert slept == [2.0]


def test_retry_config_env_overrides(monkeypatch):
    monkeypatch.setenv("FUNDINGWISH_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("FUNDINGWISH_RETRY_BASE", "1.5")
    cfg = retry.RetryConfig()
    assert cfg.attempts == 5
    assert cfg.base_sleep == 1.5
