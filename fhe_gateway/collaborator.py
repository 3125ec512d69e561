"""
Module for the external FHE collaborator consumed by the conference ledger.
Includes an abstract interface, a software-simulated gateway that stands in
for the FHE SDK and its relayer, and a mock collaborator for testing.

The ledger never computes on ciphertexts itself: it forwards handles and
proofs and trusts whatever verdict the collaborator returns.
"""
import hashlib
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .abi import HANDLE_SIZE_BYTES, UINT32_MAX, encode_clear_values

GATEWAY_KEY_SIZE_BYTES = 32
GCM_NONCE_SIZE_BYTES = 12
CIPHERTEXT_AAD = b"conference-stream-key"

class FHEError(Exception):
    """Base class for failures reported by the FHE collaborator."""

class FHEProofError(FHEError):
    """An input proof or a decryption proof was rejected."""

class FHEPermissionError(FHEError):
    """A handle was used without the required ACL grant."""


@dataclass(frozen=True)
class ExternalCiphertext:
    """What a client submits to the ledger: an encrypted handle plus its input proof."""
    handle: bytes
    proof: bytes


@dataclass(frozen=True)
class DecryptionResult:
    """Outcome of a public decryption: clear values per handle, their ABI encoding and the proof."""
    clear_values: Dict[bytes, int]
    abi_encoded: bytes
    proof: bytes


# --- FHE Collaborator Interface ---
class FHECollaboratorInterface(ABC):
    """
    Abstract Base Class for the external FHE capability.
    Mirrors the three calls the ledger makes into the FHE runtime
    (ingest, mark-public, verify-claim) plus the ACL grant issued at creation.
    """
    @abstractmethod
    def ingest_external(self, handle: bytes, proof: bytes) -> bytes:
        """
        Validates an externally-encrypted value with its input proof.

        Returns:
            The internal handle to persist.

        Raises:
            FHEProofError: If the proof does not attest the handle.
        """

    @abstractmethod
    def allow_this(self, handle: bytes) -> None:
        """Grants the ledger read permission on `handle`."""

    @abstractmethod
    def mark_publicly_decryptable(self, handle: bytes) -> None:
        """Marks `handle` as eligible for public decryption."""

    @abstractmethod
    def verify_decryption_claim(self, handles: Sequence[bytes],
                                clear_values_encoded: bytes,
                                proof: bytes) -> None:
        """
        Checks that `clear_values_encoded` is the decryption of `handles`.

        Raises:
            FHEProofError: If the signatures/proof do not match.
        """

    def is_available(self) -> bool:
        return True


# --- Software Simulated Gateway ---
class SoftwareSimulatedFHE(FHECollaboratorInterface):
    """
    A software stand-in for the FHE SDK and relayer.

    Ciphertexts are AES-256-GCM encryptions of the uint32 value under a gateway
    key; a handle is the SHA-256 digest of its ciphertext. Input proofs and
    decryption proofs are HMAC-SHA256 tags over the handle(s) (and, for
    decryptions, the ABI-encoded clear values), so a claim only verifies for
    the exact handles it was produced for.
    """
    def __init__(self, gateway_key: Optional[bytes] = None):
        if gateway_key is None:
            gateway_key = os.urandom(GATEWAY_KEY_SIZE_BYTES)
        if not isinstance(gateway_key, bytes) or len(gateway_key) != GATEWAY_KEY_SIZE_BYTES:
            raise ValueError(f"gateway_key must be {GATEWAY_KEY_SIZE_BYTES} bytes.")

        derived = HKDF(
            algorithm=hashes.SHA256(),
            length=2 * GATEWAY_KEY_SIZE_BYTES,
            salt=None,
            info=b"conference-ledger fhe gateway",
        ).derive(gateway_key)
        self._encryption_key = derived[:GATEWAY_KEY_SIZE_BYTES]
        self._mac_key = derived[GATEWAY_KEY_SIZE_BYTES:]

        self._ciphertexts: Dict[bytes, bytes] = {}
        self._allowed = set()
        self._public = set()
        self._lock = threading.Lock()

    # Client side (what the SDK's encrypt/publicDecrypt would do)
    def encrypt(self, value: int) -> ExternalCiphertext:
        """Encrypts a uint32 stream key and returns its handle with an input proof."""
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError("Value to encrypt must be an integer.")
        if not (0 <= value <= UINT32_MAX):
            raise ValueError(f"Value {value} is outside the uint32 range.")

        nonce = os.urandom(GCM_NONCE_SIZE_BYTES)
        ciphertext = nonce + AESGCM(self._encryption_key).encrypt(
            nonce, value.to_bytes(4, 'big'), CIPHERTEXT_AAD)
        handle = hashlib.sha256(ciphertext).digest()
        with self._lock:
            self._ciphertexts[handle] = ciphertext
        return ExternalCiphertext(handle=handle, proof=self._tag(b"input", handle))

    def public_decrypt(self, handles: Sequence[bytes]) -> DecryptionResult:
        """
        Decrypts handles previously marked publicly decryptable.

        Raises:
            FHEPermissionError: If any handle was not marked publicly decryptable.
        """
        if not handles:
            raise ValueError("At least one handle is required for public decryption.")
        clear_values: Dict[bytes, int] = {}
        with self._lock:
            for handle in handles:
                if handle not in self._public:
                    raise FHEPermissionError(f"Handle {handle.hex()[:16]}... is not publicly decryptable.")
                clear_values[handle] = self._decrypt(self._ciphertexts[handle])
        abi_encoded = encode_clear_values([clear_values[h] for h in handles])
        return DecryptionResult(
            clear_values=clear_values,
            abi_encoded=abi_encoded,
            proof=self._tag(b"decrypt", *handles, abi_encoded),
        )

    # Ledger side
    def ingest_external(self, handle: bytes, proof: bytes) -> bytes:
        self._require_handle(handle)
        try:
            self._verify_tag(proof, b"input", handle)
        except InvalidSignature:
            raise FHEProofError("Input proof does not attest the encrypted handle.")
        return handle

    def allow_this(self, handle: bytes) -> None:
        self._require_handle(handle)
        with self._lock:
            self._allowed.add(handle)

    def mark_publicly_decryptable(self, handle: bytes) -> None:
        self._require_handle(handle)
        with self._lock:
            if handle not in self._allowed:
                raise FHEPermissionError("Handle must be allowed before it can be made publicly decryptable.")
            self._public.add(handle)

    def verify_decryption_claim(self, handles: Sequence[bytes],
                                clear_values_encoded: bytes,
                                proof: bytes) -> None:
        if not handles:
            raise FHEProofError("A decryption claim must reference at least one handle.")
        try:
            self._verify_tag(proof, b"decrypt", *handles, clear_values_encoded)
        except InvalidSignature:
            raise FHEProofError("Decryption proof does not match the claimed clear values.")

    # Internals
    def _require_handle(self, handle: bytes) -> None:
        if not isinstance(handle, bytes) or len(handle) != HANDLE_SIZE_BYTES:
            raise FHEProofError(f"Handle must be {HANDLE_SIZE_BYTES} bytes.")
        with self._lock:
            known = handle in self._ciphertexts
        if not known:
            raise FHEProofError(f"Unknown handle {handle.hex()[:16]}...")

    def _decrypt(self, ciphertext: bytes) -> int:
        nonce, body = ciphertext[:GCM_NONCE_SIZE_BYTES], ciphertext[GCM_NONCE_SIZE_BYTES:]
        try:
            plaintext = AESGCM(self._encryption_key).decrypt(nonce, body, CIPHERTEXT_AAD)
        except InvalidTag:
            raise RuntimeError("Stored ciphertext failed authentication.")
        return int.from_bytes(plaintext, 'big')

    def _mac(self, domain: bytes, parts: Sequence[bytes]) -> hmac.HMAC:
        mac = hmac.HMAC(self._mac_key, hashes.SHA256())
        mac.update(domain)
        for part in parts:
            # Length-prefixed so handle boundaries cannot shift
            mac.update(len(part).to_bytes(4, 'big'))
            mac.update(part)
        return mac

    def _tag(self, domain: bytes, *parts: bytes) -> bytes:
        return self._mac(domain, parts).finalize()

    def _verify_tag(self, tag: bytes, domain: bytes, *parts: bytes) -> None:
        if not isinstance(tag, bytes):
            raise InvalidSignature()
        self._mac(domain, parts).verify(tag)


# --- Mock Collaborator (for testing) ---
@dataclass
class MockFHE(FHECollaboratorInterface):
    """
    A mock collaborator for testing purposes.
    Accepts or rejects proofs deterministically and records every call.
    """
    accept_inputs: bool = True
    accept_claims: bool = True
    available: bool = True
    allowed: List[bytes] = field(default_factory=list)
    public: List[bytes] = field(default_factory=list)
    claims: List[tuple] = field(default_factory=list)

    def ingest_external(self, handle: bytes, proof: bytes) -> bytes:
        if not self.accept_inputs:
            raise FHEProofError("MockFHE configured to reject input proofs.")
        return handle

    def allow_this(self, handle: bytes) -> None:
        self.allowed.append(handle)

    def mark_publicly_decryptable(self, handle: bytes) -> None:
        self.public.append(handle)

    def verify_decryption_claim(self, handles: Sequence[bytes],
                                clear_values_encoded: bytes,
                                proof: bytes) -> None:
        self.claims.append((list(handles), clear_values_encoded, proof))
        if not self.accept_claims:
            raise FHEProofError("MockFHE configured to reject decryption proofs.")

    def is_available(self) -> bool:
        return self.available
