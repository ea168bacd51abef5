"""Unit tests for users file parsing, rendering and generation."""

from __future__ import annotations

import stat
import sys

from typing import TYPE_CHECKING

import pytest

from oauthkit.auth.users_file import (
    HashType,
    UserRecord,
    UsersFile,
    generate_files,
    parse_lines,
    to_secure,
)
from oauthkit.exceptions import DuplicateHashError, StoreConsistencyError, UsersFileError
from oauthkit.hashing import hash_password, hash_token, verify_password
from tests.constants import FAST_BCRYPT_ROUNDS, PASSWORD, RAW_TOKEN


if TYPE_CHECKING:
    from pathlib import Path


# ── Parsing ─────────────────────────────────────────────────────────


class TestGeneration:
    """Tests for empty $token$ and $password$ directives."""

    def test_generate_token(self) -> None:
        """An empty $token$ directive generates a token and renders it back."""
        records = parse_lines(["tester:$token$"])
        assert len(records) == 1
        record = records[0]
        assert record.value
        assert record.hash_type is HashType.SHA256
        assert record.hash_code == hash_token(record.value)
        assert record.to_line() == "tester:$token$" + record.value

    def test_generate_password(self) -> None:
        """An empty $password$ directive yields a cost-10 $2a$ bcrypt record."""
        records = parse_lines(["tester:$password$"])
        assert len(records) == 1
        record = records[0]
        assert record.hash_type is HashType.BCRYPT
        assert record.value
        assert record.to_line().startswith("tester:$2a$10$")
        assert verify_password(record.value, record.hash_code or "")

    def test_plain_line_keeps_password(self) -> None:
        """to_plain_line() renders the raw password directive."""
        record = parse_lines(["tester:$password$"], rounds=FAST_BCRYPT_ROUNDS)[0]
        assert record.to_plain_line() == "tester:$password$" + (record.value or "")

    def test_generation_disabled(self) -> None:
        """Empty directives are errors when generation is off."""
        with pytest.raises(UsersFileError) as exc_info:
            parse_lines(["tester:$token$"], generate_missing=False)
        assert exc_info.value.line_number == 1
        with pytest.raises(UsersFileError):
            parse_lines(["tester:$password$"], generate_missing=False)


class TestParsing:
    """Tests for parse_lines()."""

    def test_supplied_credentials(self) -> None:
        """Supplied token and password values are hashed and retained."""
        records = parse_lines(
            [f"tester0:$password${PASSWORD}", f"tester1:$token${RAW_TOKEN}"],
            rounds=FAST_BCRYPT_ROUNDS,
        )
        assert records[0].value == PASSWORD
        assert verify_password(PASSWORD, records[0].hash_code or "")
        assert records[1].value == RAW_TOKEN
        assert records[1].hash_code == hash_token(RAW_TOKEN)

    def test_existing_hashes(self) -> None:
        """bcrypt and $sha256$ lines load as-is without raw values."""
        bcrypt_hash = hash_password(PASSWORD, rounds=FAST_BCRYPT_ROUNDS)
        digest = hash_token(RAW_TOKEN)
        records = parse_lines([f"a:{bcrypt_hash}", f"b:$sha256${digest.upper()}"])
        assert records[0] == UserRecord("a", HashType.BCRYPT, bcrypt_hash)
        assert records[1] == UserRecord("b", HashType.SHA256, digest)
        assert records[0].to_line() == f"a:{bcrypt_hash}"
        assert records[1].to_line() == f"b:$sha256${digest}"

    def test_whitespace_is_trimmed(self) -> None:
        """Surrounding whitespace on lines and fields is ignored."""
        records = parse_lines([f"  tester : $token${RAW_TOKEN}  "])
        assert records[0].username == "tester"
        assert records[0].value == RAW_TOKEN

    def test_preserves_blank_and_comment_lines(self) -> None:
        """Blank and comment lines become NONE records in order."""
        records = parse_lines(["# users", "", f"tester:$token${RAW_TOKEN}"])
        assert [r.hash_type for r in records] == [HashType.NONE, HashType.NONE, HashType.SHA256]
        assert records[0].to_line() == "# users"
        assert records[1].to_line() == ""

    def test_drops_formatting_when_not_preserved(self) -> None:
        """With preserve_formatting off only credentials are returned."""
        records = parse_lines(["# users", "", f"tester:$token${RAW_TOKEN}"], preserve_formatting=False)
        assert len(records) == 1

    @pytest.mark.parametrize(
        ("line", "match"),
        [
            ("tester", "username:hash"),
            ("tester:", "username:hash"),
            (":$token$1234567890123456", "username:hash"),
            ("tester:plaintext", "Expecting"),
            ("tester:$token$short", "at least 16"),
            ("tester:$password$short", "at least 8"),
            ("tester:$sha256$abc", "64 hex"),
            ("tester:$sha256$" + "z" * 64, "64 hex"),
        ],
    )
    def test_malformed_line_reports_line_number(self, line: str, match: str) -> None:
        """A malformed line fails the whole load and names its line."""
        lines = ["# header", f"ok:$token${RAW_TOKEN}", line]
        with pytest.raises(UsersFileError, match=match) as exc_info:
            parse_lines(lines)
        assert exc_info.value.line_number == 3

    def test_errors_do_not_leak_raw_credentials(self) -> None:
        """Error messages never include the rejected secret."""
        with pytest.raises(UsersFileError) as exc_info:
            parse_lines(["tester:$password$sekret1"])
        assert "sekret1" not in str(exc_info.value)

    def test_duplicate_hash(self) -> None:
        """Two records with the same hash reject the load."""
        lines = [f"tester0:$token${RAW_TOKEN}", f"tester1:$token${RAW_TOKEN}"]
        with pytest.raises(DuplicateHashError) as exc_info:
            parse_lines(lines)
        assert exc_info.value.line_number == 2
        assert exc_info.value.username == "tester1"
        assert isinstance(exc_info.value, StoreConsistencyError)

    def test_repr_hides_value(self) -> None:
        """repr() does not show raw credentials."""
        record = parse_lines([f"tester:$token${RAW_TOKEN}"])[0]
        assert RAW_TOKEN not in repr(record)


# ── Secure conversion ───────────────────────────────────────────────


class TestToSecure:
    """Tests for to_secure()."""

    def test_convert_to_secure(self) -> None:
        """Mixed directives become hash-only lines in original order."""
        records = parse_lines(["tester:$password$", "tester:$token$"])
        secure = to_secure(records)
        assert len(secure) == 2
        assert secure[0].to_line().startswith("tester:$2a$10$")
        assert secure[1].to_line().startswith("tester:$sha256$")
        assert all(r.value is None for r in secure)

    def test_formatting_dropped(self) -> None:
        """Blank and comment records do not appear in secure output."""
        records = parse_lines(
            ["tester:$password$", "tester:$token$", "", "#comment"],
            rounds=FAST_BCRYPT_ROUNDS,
        )
        assert len(records) == 4
        secure = to_secure(records)
        assert len(secure) == 2
        assert secure[0].to_line().startswith("tester:$2a$04$")
        assert secure[1].to_line().startswith("tester:$sha256$")

    def test_clear_value_keeps_hash(self) -> None:
        """clear_value() drops only the raw value."""
        record = parse_lines([f"tester:$token${RAW_TOKEN}"])[0]
        cleared = record.clear_value()
        assert cleared.value is None
        assert cleared.hash_code == record.hash_code
        assert cleared.clear_value() is cleared


# ── Loaded file ─────────────────────────────────────────────────────


class TestUsersFile:
    """Tests for UsersFile lookup maps."""

    def test_maps(self) -> None:
        """Records are indexed by user and by hash."""
        records = parse_lines(
            [f"tester0:$password${PASSWORD}", f"tester1:$token${RAW_TOKEN}"],
            rounds=FAST_BCRYPT_ROUNDS,
        )
        users = UsersFile(records)
        assert len(users.bcrypt_hashes) == 1
        assert len(users.sha256_hashes) == 1
        assert len(users.user_for_hash) == 2
        assert users.user_for_hash[records[0].hash_code or ""] == "tester0"
        assert users.user_for_hash[records[1].hash_code or ""] == "tester1"
        assert users.sha256_hashes["tester1"] == hash_token(RAW_TOKEN)

    def test_check_password(self) -> None:
        """check_password() verifies against the user's bcrypt hash."""
        users = UsersFile(parse_lines([f"tester0:$password${PASSWORD}"], rounds=FAST_BCRYPT_ROUNDS))
        assert users.check_password("tester0", PASSWORD)
        assert not users.check_password("tester0", "x" + PASSWORD)
        assert not users.check_password("nobody", PASSWORD)

    def test_token_lookup(self) -> None:
        """A raw token resolves to its owner."""
        users = UsersFile(parse_lines([f"tester1:$token${RAW_TOKEN}"]))
        assert users.username_for_token(RAW_TOKEN) == "tester1"
        assert users.username_for_token(RAW_TOKEN + "x") is None
        assert users.username_for_token("short") is None
        assert users.check_token("tester1", RAW_TOKEN)
        assert not users.check_token("tester0", RAW_TOKEN)

    def test_duplicate_hash_across_records(self) -> None:
        """Building from records with a repeated hash fails."""
        digest = hash_token(RAW_TOKEN)
        records = [
            UserRecord("a", HashType.SHA256, digest),
            UserRecord("b", HashType.SHA256, digest),
        ]
        with pytest.raises(DuplicateHashError):
            UsersFile(records)

    def test_from_lines_does_not_generate(self) -> None:
        """Loading refuses empty directives by default."""
        with pytest.raises(UsersFileError):
            UsersFile.from_lines(["tester:$token$"])

    def test_from_path(self, tmp_path: Path) -> None:
        """A file on disk loads, skipping comments."""
        path = tmp_path / "users.txt"
        path.write_text(f"# users\n\ntester:$sha256${hash_token(RAW_TOKEN)}\n", encoding="utf-8")
        users = UsersFile.from_path(path)
        assert len(users) == 1
        assert users.username_for_token(RAW_TOKEN) == "tester"


class TestGenerateFiles:
    """Tests for generate_files()."""

    def test_generate_files(self, tmp_path: Path) -> None:
        """The secure file loads back; the insecure file keeps raw values."""
        secure = tmp_path / "secure.txt"
        insecure = tmp_path / "insecure.txt"
        records = generate_files(
            ["tester:$password$", "tester:$token$", "", "#comment"],
            secure,
            insecure,
            rounds=FAST_BCRYPT_ROUNDS,
        )

        users = UsersFile.from_path(secure)
        assert len(users.user_for_hash) == 2
        assert len(users.sha256_hashes) == 1
        assert len(users.bcrypt_hashes) == 1

        password, token = records[0].value or "", records[1].value or ""
        assert users.check_password("tester", password)
        assert users.username_for_token(token) == "tester"

        secure_text = secure.read_text(encoding="utf-8")
        assert password not in secure_text
        assert token not in secure_text
        assert "#comment" not in secure_text

        insecure_lines = insecure.read_text(encoding="utf-8").splitlines()
        assert insecure_lines == [
            f"tester:$password${password}",
            f"tester:$token${token}",
            "",
            "#comment",
        ]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_insecure_file_is_private(self, tmp_path: Path) -> None:
        """The insecure file is readable by its owner only."""
        insecure = tmp_path / "insecure.txt"
        generate_files([f"tester:$token${RAW_TOKEN}"], tmp_path / "secure.txt", insecure)
        assert stat.S_IMODE(insecure.stat().st_mode) == 0o600
