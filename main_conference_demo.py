# main_conference_demo.py
"""
Main script to demonstrate the conference ledger lifecycle:
create a conference with an FHE-encrypted stream key, publicly decrypt it
through the simulated gateway, submit the decryption claim, and end it.
"""
from ledger_core.ledger import ConferenceLedger
from ledger_core.record_store import InMemoryRecordStore
from ledger_core import errors
from fhe_gateway.collaborator import SoftwareSimulatedFHE

class DemoClock:
    """A settable clock so the demo can step past the conference window."""
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

def run_full_demo():
    print("=" * 50)
    print(" Secure Conference Ledger Demo")
    print("=" * 50)

    # --- Setup ---
    clock = DemoClock(now=1_700_000_000)
    gateway = SoftwareSimulatedFHE()
    ledger = ConferenceLedger(store=InMemoryRecordStore(), fhe=gateway, clock=clock)
    ledger.events.subscribe(lambda event: print(f"  [Event] {event.kind} -> {event.conference_id} {event.payload}"))
    print(f"\n[Setup] FHE gateway: {gateway.__class__.__name__} (available: {ledger.is_available()})")

    creator = "0x5a0b54d5dc17e0aadc383d2db43b0a0d3e029c4c"
    stream_key = 424242

    # --- Scenario 1: Create ---
    print("\n--- Scenario 1: Create a conference with an encrypted stream key ---")
    ciphertext = gateway.encrypt(stream_key)
    print(f"[Client] Encrypted stream key {stream_key} -> handle {ciphertext.handle.hex()[:16]}...")
    conference = ledger.create(
        conference_id="conference-1700000000000",
        encrypted_value=ciphertext.handle,
        proof=ciphertext.proof,
        start_time=clock.now,
        end_time=clock.now + 3600,
        creator=creator,
        name="Quarterly Board Sync",
        participant_limit=8,
    )
    print(f"[Ledger] Created '{conference.conference_id}' (active: {conference.is_active}, decrypted: {conference.is_decrypted})")

    try:
        ledger.create("conference-1700000000000", ciphertext.handle, ciphertext.proof,
                      clock.now, clock.now + 60, creator)
    except errors.AlreadyExists as e:
        print(f"[Ledger] Duplicate id correctly rejected: {e}")

    # --- Scenario 2: Decrypt ---
    print("\n--- Scenario 2: Public decryption and claim submission ---")
    clock.now += 600
    handle = ledger.get_encrypted_value(conference.conference_id)
    result = gateway.public_decrypt([handle])
    print(f"[Relayer] Clear value: {result.clear_values[handle]}")
    conference = ledger.submit_decryption(conference.conference_id, result.abi_encoded, result.proof)
    print(f"[Ledger] Decrypted value stored: {conference.decrypted_value} (matches: {conference.decrypted_value == stream_key})")

    try:
        ledger.submit_decryption(conference.conference_id, result.abi_encoded, result.proof)
    except errors.AlreadyDecrypted as e:
        print(f"[Ledger] Second claim correctly rejected: {e}")

    # --- Scenario 3: End ---
    print("\n--- Scenario 3: End the conference ---")
    try:
        ledger.end(conference.conference_id, creator)
    except errors.StillActive as e:
        print(f"[Ledger] Early end correctly rejected: {e}")
    clock.now = conference.end_time + 1
    try:
        ledger.end(conference.conference_id, "0x0000000000000000000000000000000000000001")
    except errors.Forbidden as e:
        print(f"[Ledger] Non-creator end correctly rejected: {e}")
    conference = ledger.end(conference.conference_id, creator)
    print(f"[Ledger] Conference active: {conference.is_active}")

    stats = ledger.stats()
    print(f"\n[Summary] ids={ledger.list_ids()} total={stats.total} active={stats.active} decrypted={stats.decrypted}")
    print("\n" + "=" * 50)
    print(" Demo Finished")
    print("=" * 50)

if __name__ == "__main__":
    run_full_demo()
