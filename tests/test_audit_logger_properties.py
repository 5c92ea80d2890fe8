"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing of output formats, level
filtering and masking of credentials and visitor personal data.
"""

import json
from io import StringIO

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from url_moderator.enums import LogLevel, StoreErrorCode
from url_moderator.audit_logger import AuditLogger
from url_moderator.exceptions import RemoteUnavailableError


# Strategies for generating valid test data

@st.composite
def log_level_strategy(draw) -> LogLevel:
    """Generate valid LogLevel values."""
    return draw(st.sampled_from(list(LogLevel)))


@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))

    key_lower = key.lower()
    for pattern in AuditLogger.SENSITIVE_KEYS:
        if pattern == "ip":
            assume(key_lower != "ip")
        else:
            assume(pattern not in key_lower)

    return key


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base_keys = [
        'token', 'secret', 'password', 'api_key', 'upload_preset',
        'id_token', 'authorization', 'credential', 'email',
    ]

    base = draw(st.sampled_from(base_keys))

    # Optionally add prefix/suffix
    prefix = draw(st.sampled_from(['', 'my_', 'user_', 'cloudinary_']))
    suffix = draw(st.sampled_from(['', '_value', '_data', '_1']))

    return f"{prefix}{base}{suffix}"


@st.composite
def simple_value_strategy(draw):
    """Generate simple JSON-serializable values."""
    return draw(st.one_of(
        st.text(min_size=0, max_size=50),
        st.integers(min_value=-1000, max_value=1000),
        st.floats(allow_nan=False, allow_infinity=False, min_value=-1000, max_value=1000),
        st.booleans(),
        st.none(),
    ))


@st.composite
def non_sensitive_data_strategy(draw) -> dict:
    """Generate data dictionaries without sensitive keys."""
    num_keys = draw(st.integers(min_value=0, max_value=5))
    data = {}
    for _ in range(num_keys):
        key = draw(non_sensitive_key_strategy())
        value = draw(simple_value_strategy())
        data[key] = value
    return data


class TestOutputFormatProperty:
    """Entries are written as JSON, text, or both."""

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
    )
    @settings(max_examples=100)
    def test_both_format_produces_json_and_text(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: dict,
    ) -> None:
        """
        *For any* log entry when output_format is "both", the logger writes
        a valid JSON line followed by a human-readable text line.
        """
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output, min_level=LogLevel.DEBUG)

        logger.log(level, component, message, data)

        lines = output.getvalue().rstrip('\n').split('\n')
        assert len(lines) == 2, f"Expected 2 lines, got {len(lines)}"

        parsed_json = json.loads(lines[0])
        assert parsed_json["level"] == level.value
        assert parsed_json["component"] == component
        assert parsed_json["message"] == message
        assert parsed_json["data"] == data
        assert "timestamp" in parsed_json

        text_line = lines[1]
        assert level.value.upper() in text_line
        assert f"[{component}]" in text_line
        assert message in text_line

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_json_only_format(
        self,
        level: LogLevel,
        component: str,
        message: str,
    ) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, min_level=LogLevel.DEBUG)

        logger.log(level, component, message)

        lines = [line for line in output.getvalue().strip().split('\n') if line]
        assert len(lines) == 1
        parsed = json.loads(lines[0])
        assert parsed["message"] == message
        assert parsed["data"] == {}

    def test_invalid_format_rejected(self) -> None:
        try:
            AuditLogger(output_format="xml")
        except ValueError:
            return
        raise AssertionError("ValueError expected for an unknown output format")


class TestLevelFilterProperty:
    """Entries below the minimum level are dropped."""

    @given(level=log_level_strategy(), minimum=log_level_strategy())
    @settings(max_examples=100)
    def test_entries_below_minimum_dropped(self, level: LogLevel, minimum: LogLevel) -> None:
        order = list(LogLevel)
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output, min_level=minimum)

        entry = logger.log(level, "Component", "message")

        if order.index(level) < order.index(minimum):
            assert entry is None
            assert output.getvalue() == ""
            assert logger.entries == []
        else:
            assert entry is not None
            assert logger.entries == [entry]

    def test_from_level_name(self) -> None:
        output = StringIO()
        logger = AuditLogger.from_level_name("WARN", output_stream=output)

        assert logger.log(LogLevel.INFO, "C", "dropped") is None
        assert logger.log(LogLevel.WARN, "C", "kept") is not None

        fallback = AuditLogger.from_level_name("verbose", output_stream=output)
        assert fallback.log(LogLevel.DEBUG, "C", "dropped") is None
        assert fallback.log(LogLevel.INFO, "C", "kept") is not None


class TestMaskingProperty:
    """Credentials and visitor personal data never reach the output."""

    @given(
        key=sensitive_key_strategy(),
        secret=st.text(
            alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"),
            min_size=8,
            max_size=40,
        ),
        nested=st.booleans(),
    )
    @settings(max_examples=100)
    def test_sensitive_values_masked_at_any_depth(self, key: str, secret: str, nested: bool) -> None:
        """
        *For any* sensitive key, at top level or nested in maps and lists,
        the value is replaced by the mask in the stored entry and the output.
        """
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output)
        data = {"outer": {"items": [{key: secret}]}} if nested else {key: secret}

        entry = logger.log(LogLevel.INFO, "ImageUploader", "Uploading", data)

        written = json.loads(output.getvalue().split('\n')[0])
        assert secret not in json.dumps(written["data"])
        if nested:
            assert entry.data["outer"]["items"][0][key] == AuditLogger.MASK_VALUE
        else:
            assert entry.data[key] == AuditLogger.MASK_VALUE

    @given(data=non_sensitive_data_strategy())
    @settings(max_examples=100)
    def test_other_values_untouched(self, data: dict) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        assert logger.mask_sensitive_data(data) == data

    def test_ip_masked_only_as_whole_key(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        masked = logger.mask_sensitive_data({
            "ip": "203.0.113.9",
            "description": "kept",
            "userEmail": "a@b.example",
        })

        assert masked == {
            "ip": AuditLogger.MASK_VALUE,
            "description": "kept",
            "userEmail": AuditLogger.MASK_VALUE,
        }


class TestErrorContextProperty:
    """Errors are logged with their type, message and code."""

    @given(message=message_strategy(), code=st.sampled_from(list(StoreErrorCode)))
    @settings(max_examples=50)
    def test_log_error_includes_error_context(self, message: str, code: StoreErrorCode) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        error = RemoteUnavailableError(code=code.value, message=message)

        entry = logger.log_error("FirestoreClient", "Request failed", error, {"collection": "urls"})

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_message"] == message
        assert entry.data["error_type"] == "RemoteUnavailableError"
        assert entry.data["error_code"] == code.value
        assert entry.data["collection"] == "urls"

    def test_error_details_logged_and_masked(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = RemoteUnavailableError(
            code=StoreErrorCode.SERVER_ERROR.value,
            message="boom",
            details={"http_status_code": 503, "api_key": "k-secret"},
        )

        entry = logger.log_error("FirestoreClient", "Request failed", error)

        assert entry.data["error_details"] == {
            "http_status_code": 503,
            "api_key": AuditLogger.MASK_VALUE,
        }

    def test_plain_exception_has_no_code(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())

        entry = logger.log_error("Cli", "Unexpected", ValueError("bad"))

        assert entry.data["error_type"] == "ValueError"
        assert "error_code" not in entry.data

    def test_clear_entries(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())
        logger.log(LogLevel.INFO, "C", "one")

        logger.clear_entries()

        assert logger.entries == []
