#!/usr/bin/env python3
"""
Mock Session Demo - Puppet App

This script walks a mock puppet through a full session. It shows how to:
- Configure structured logging
- Load options from config/puppets.yaml and create a puppet
- Subscribe to session events
- Start, use the dual-mode accessors, log out and stop

Run: python examples/mock_session_demo.py
"""

import asyncio

from puppet_app.config import ConfigLoader
from puppet_app.logging import configure_logging
from puppet_app.puppet import FileBox, PuppetEventName, Receiver, create_puppet
from puppet_app.utils import call_with_retry


def print_event(name: str):
    """Build a handler printing one event."""

    def handler(*args):
        print(f"   [event] {name}: {', '.join(str(a) for a in args)}")

    return handler


async def run_demo() -> None:
    print("1. Loading options for 'demo-bot'...")
    options = ConfigLoader.create().load_options("demo-bot")
    puppet = create_puppet(options)
    print(f"   Created {puppet!r} with a {puppet.watchdog_timeout}s watchdog")
    print()

    for event_name in (PuppetEventName.LOGIN, PuppetEventName.LOGOUT,
                       PuppetEventName.READY, PuppetEventName.ROOM_JOIN,
                       PuppetEventName.ROOM_TOPIC, PuppetEventName.MESSAGE):
        puppet.on(event_name, print_event(str(event_name)))

    print("2. Starting the session...")
    await puppet.start()
    print(f"   State: {puppet.state.current_state().value}, logged in as {puppet.self_id()}")
    print()

    print("3. Talking to a contact...")
    puppet.mock_contact("alice", "Alice", gender=2)
    puppet.mock_inbound_message("alice", "hello bot")
    await call_with_retry(puppet.message_send_text, Receiver(contact_id="alice"), "hello Alice")
    await puppet.contact_alias("alice", "Ally")
    contact = await puppet.contact_payload("alice")
    print(f"   {contact.name} is now known as {await puppet.contact_alias('alice')}"
          f" ({contact.gender.name.lower()})")
    print()

    print("4. Running a room...")
    room_id = await puppet.room_create(["alice"], "demo room")
    await puppet.room_topic(room_id, "renamed demo room")
    await puppet.room_announce(room_id, "be nice")
    await puppet.message_send_file(
        Receiver(room_id=room_id),
        FileBox(name="notes.txt", data=b"meeting notes", mime_type="text/plain")
    )
    print(f"   Topic: {await puppet.room_topic(room_id)}")
    print(f"   Announcement: {await puppet.room_announce(room_id)}")
    print(f"   Members: {await puppet.room_member_list(room_id)}")
    print(f"   QR code: {await puppet.room_qrcode(room_id)}")
    print()

    print("5. Ding...")
    await puppet.ding("are you there?")
    print(f"   Watchdog last fed by: {puppet.watchdog.last_food.kind}")
    print()

    print("6. Logging out and stopping...")
    await puppet.logout()
    print(f"   State after logout: {puppet.state.current_state().value}")
    await puppet.stop()
    print(f"   State after stop: {puppet.state.current_state().value}")

    cache_stats = puppet.cache_contact_payload.get_stats()
    print(f"   Contact cache: {cache_stats['hits']} hits, {cache_stats['misses']} misses")


def main():
    """Main demonstration function."""
    print("Puppet App - Mock Session Demo")
    print("=" * 60)

    configure_logging(level="WARNING")
    asyncio.run(run_demo())

    print()
    print("Demo complete.")


if __name__ == "__main__":
    main()
