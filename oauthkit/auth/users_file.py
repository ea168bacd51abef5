"""Users file: credentials at rest, one ``username:hash`` per line.

Accepted hash forms::

    alice:$2a$10$...                 bcrypt hash ($2b$ and $2y$ also accepted)
    bob:$sha256$<64 hex chars>       SHA-256 of a bearer token
    carol:$token$<raw, 16+ chars>    token to be hashed on load
    dave:$password$<raw, 8+ chars>   password to be hashed on load

``$token$`` and ``$password$`` with nothing after them generate a random
credential when generation is enabled. Blank lines and ``#`` comments
are kept as non-credential records so a file can be rewritten without
losing its layout.

Loading is fail-fast: any malformed line, or two records resolving to
the same hash, rejects the whole file.
"""

from __future__ import annotations

import logging
import secrets

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ..exceptions import CredentialValidationError, DuplicateHashError, UsersFileError
from ..hashing import (
    BCRYPT_PREFIXES,
    MIN_PASSWORD_LENGTH,
    MIN_TOKEN_LENGTH,
    hash_password,
    hash_token,
    is_sha256_hex,
    random_token,
    verify_password,
    verify_token,
)


if TYPE_CHECKING:
    from collections.abc import Iterable


logger = logging.getLogger("oauthkit.auth")

SHA256_PREFIX = "$sha256$"
TOKEN_PREFIX = "$token$"
PASSWORD_PREFIX = "$password$"

GENERATED_PASSWORD_BYTES = 12


class HashType(str, Enum):
    """How a record's credential is hashed."""

    BCRYPT = "bcrypt"
    SHA256 = "sha256"
    NONE = "none"


@dataclass(frozen=True)
class UserRecord:
    """One line of a users file.

    Attributes
    ----------
    username : str or None
        The user, None for blank and comment lines.
    hash_type : HashType
        BCRYPT for passwords, SHA256 for tokens, NONE for non-credential lines.
    hash_code : str or None
        The bcrypt hash string or the SHA-256 hex digest.
    value : str or None
        The raw credential when the line supplied or generated one,
        otherwise None. For NONE records, the original line text.
    """

    username: str | None
    hash_type: HashType
    hash_code: str | None
    value: str | None = None

    @classmethod
    def text(cls, line: str) -> UserRecord:
        """A blank or comment line."""
        return cls(username=None, hash_type=HashType.NONE, hash_code=None, value=line)

    def __repr__(self) -> str:
        if self.hash_type is HashType.NONE:
            return f"UserRecord(text={self.value!r})"
        value = "[hidden]" if self.value else None
        return (
            f"UserRecord(username={self.username!r}, hash_type={self.hash_type.value!r}, "
            f"hash_code={self.hash_code!r}, value={value!r})"
        )

    @property
    def is_credential(self) -> bool:
        """Whether the record carries a credential."""
        return self.hash_type is not HashType.NONE

    def clear_value(self) -> UserRecord:
        """Copy of this record without its raw credential."""
        if not self.value or not self.is_credential:
            return self
        return replace(self, value=None)

    def to_line(self) -> str:
        """Render as a users file line.

        Token records holding their raw value render it as a ``$token$``
        directive. Password records always render their bcrypt hash.
        """
        if self.hash_type is HashType.NONE:
            return self.value or ""
        if self.hash_type is HashType.SHA256:
            if self.value:
                return f"{self.username}:{TOKEN_PREFIX}{self.value}"
            return f"{self.username}:{SHA256_PREFIX}{self.hash_code}"
        return f"{self.username}:{self.hash_code}"

    def to_plain_line(self) -> str:
        """Render with every retained raw credential, passwords included."""
        if self.hash_type is HashType.BCRYPT and self.value:
            return f"{self.username}:{PASSWORD_PREFIX}{self.value}"
        return self.to_line()


def _parse_credential(
    username: str,
    credential: str,
    line_number: int,
    generate_missing: bool,
    rounds: int | None,
) -> UserRecord:
    if credential.startswith(BCRYPT_PREFIXES):
        return UserRecord(username, HashType.BCRYPT, credential)

    if credential.startswith(SHA256_PREFIX):
        digest = credential[len(SHA256_PREFIX) :]
        if not is_sha256_hex(digest):
            msg = "SHA-256 hash must be 64 hex characters"
            raise UsersFileError(msg, line_number=line_number, username=username)
        return UserRecord(username, HashType.SHA256, digest.lower())

    if credential.startswith(TOKEN_PREFIX):
        token = credential[len(TOKEN_PREFIX) :]
        if not token:
            if not generate_missing:
                msg = "Token is empty and generation is disabled"
                raise UsersFileError(msg, line_number=line_number, username=username)
            token = random_token()
        elif len(token) < MIN_TOKEN_LENGTH:
            msg = f"Token must be at least {MIN_TOKEN_LENGTH} characters"
            raise UsersFileError(msg, line_number=line_number, username=username)
        return UserRecord(username, HashType.SHA256, hash_token(token), token)

    if credential.startswith(PASSWORD_PREFIX):
        password = credential[len(PASSWORD_PREFIX) :]
        if not password:
            if not generate_missing:
                msg = "Password is empty and generation is disabled"
                raise UsersFileError(msg, line_number=line_number, username=username)
            password = secrets.token_urlsafe(GENERATED_PASSWORD_BYTES)
        elif len(password) < MIN_PASSWORD_LENGTH:
            msg = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            raise UsersFileError(msg, line_number=line_number, username=username)
        try:
            hashed = hash_password(password, rounds=rounds)
        except CredentialValidationError as exc:
            raise UsersFileError(exc.message, line_number=line_number, username=username) from exc
        return UserRecord(username, HashType.BCRYPT, hashed, password)

    msg = "Expecting '$2a', '$sha256$', '$token$' or '$password$'"
    raise UsersFileError(msg, line_number=line_number, username=username)


def parse_lines(
    lines: Iterable[str],
    preserve_formatting: bool = True,
    generate_missing: bool = True,
    rounds: int | None = None,
) -> list[UserRecord]:
    """Parse users file lines into records.

    Parameters
    ----------
    lines : Iterable[str]
        The file's lines.
    preserve_formatting : bool
        Keep blank and comment lines as NONE records (default True).
    generate_missing : bool
        Generate random credentials for empty ``$token$`` and
        ``$password$`` directives (default True).
    rounds : int, optional
        bcrypt cost for ``$password$`` directives. Defaults to
        ``HashingSettings.bcrypt_rounds``.

    Returns
    -------
    list[UserRecord]
        Records in file order.

    Raises
    ------
    UsersFileError
        On the first malformed line.
    DuplicateHashError
        If two records resolve to the same hash.
    """
    records: list[UserRecord] = []
    seen_hashes: set[str] = set()

    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            if preserve_formatting:
                records.append(UserRecord.text(line))
            continue

        username, sep, credential = line.partition(":")
        username = username.strip()
        credential = credential.strip()
        if not sep or not username or not credential:
            msg = "Expected 'username:hash'"
            raise UsersFileError(msg, line_number=line_number)

        record = _parse_credential(username, credential, line_number, generate_missing, rounds)
        if record.hash_code in seen_hashes:
            msg = "Duplicate hash"
            raise DuplicateHashError(msg, line_number=line_number, username=username)
        seen_hashes.add(record.hash_code)  # type: ignore[arg-type]
        records.append(record)

    return records


def to_secure(records: Iterable[UserRecord]) -> list[UserRecord]:
    """Credential records only, with raw values removed."""
    return [record.clear_value() for record in records if record.is_credential]


class UsersFile:
    """Loaded users file with lookup maps.

    Parameters
    ----------
    records : Iterable[UserRecord]
        Parsed records. NONE records are ignored.

    Attributes
    ----------
    bcrypt_hashes : dict[str, str]
        username -> bcrypt hash.
    sha256_hashes : dict[str, str]
        username -> SHA-256 hex of the user's token.
    user_for_hash : dict[str, str]
        hash -> username, for token lookups.
    """

    def __init__(self, records: Iterable[UserRecord]) -> None:
        self.bcrypt_hashes: dict[str, str] = {}
        self.sha256_hashes: dict[str, str] = {}
        self.user_for_hash: dict[str, str] = {}
        for record in records:
            if not record.is_credential or record.hash_code is None or record.username is None:
                continue
            if record.hash_code in self.user_for_hash:
                msg = "Duplicate hash"
                raise DuplicateHashError(msg, username=record.username)
            self.user_for_hash[record.hash_code] = record.username
            if record.hash_type is HashType.BCRYPT:
                self.bcrypt_hashes[record.username] = record.hash_code
            else:
                self.sha256_hashes[record.username] = record.hash_code

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[str],
        generate_missing: bool = False,
        rounds: int | None = None,
    ) -> UsersFile:
        """Load from lines. Generation is off by default when loading."""
        return cls(
            parse_lines(
                lines,
                preserve_formatting=False,
                generate_missing=generate_missing,
                rounds=rounds,
            )
        )

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        generate_missing: bool = False,
        rounds: int | None = None,
    ) -> UsersFile:
        """Load from a file on disk."""
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        users = cls.from_lines(lines, generate_missing=generate_missing, rounds=rounds)
        logger.info("Loaded %d credential(s) from %s", len(users), path)
        return users

    def __len__(self) -> int:
        return len(self.user_for_hash)

    def check_password(self, username: str, password: str) -> bool:
        """Verify a user's password against their bcrypt hash."""
        hashed = self.bcrypt_hashes.get(username)
        if hashed is None:
            return False
        return verify_password(password, hashed)

    def check_token(self, username: str, token: str) -> bool:
        """Verify a user's bearer token against their SHA-256 hash."""
        token_hash = self.sha256_hashes.get(username)
        if token_hash is None:
            return False
        return verify_token(token, token_hash)

    def username_for_token(self, token: str) -> str | None:
        """The user owning a raw bearer token, if any."""
        if len(token) < MIN_TOKEN_LENGTH:
            return None
        return self.user_for_hash.get(hash_token(token))


def generate_files(
    lines: Iterable[str],
    secure_path: str | Path,
    insecure_path: str | Path,
    rounds: int | None = None,
) -> list[UserRecord]:
    """Expand a users file template into a secure and an insecure file.

    The secure file holds only hashes. The insecure file keeps the
    template's layout and every raw credential, including generated
    ones, so they can be handed out; it is written owner-readable only.

    Returns
    -------
    list[UserRecord]
        The parsed records, raw values included.
    """
    records = parse_lines(lines, preserve_formatting=True, generate_missing=True, rounds=rounds)

    secure = Path(secure_path)
    secure.write_text(
        "".join(f"{record.to_line()}\n" for record in to_secure(records)),
        encoding="utf-8",
    )

    insecure = Path(insecure_path)
    insecure.write_text(
        "".join(f"{record.to_plain_line()}\n" for record in records),
        encoding="utf-8",
    )
    insecure.chmod(0o600)

    logger.info("Wrote %d credential(s) to %s", len(to_secure(records)), secure)
    return records
