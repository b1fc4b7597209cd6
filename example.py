#!/usr/bin/env python3
"""
Quick example demonstrating home-automation basic usage.

Run with: PYTHONPATH=src python3 example.py
"""

from datetime import datetime

from home_automation import MockClock, SmartHome
from home_automation.core.bus import RULE_TRIGGERED, STATE_CHANGED

print("=" * 60)
print("home-automation Example")
print("=" * 60)

# 1. Build the home with a simulated clock
print("\n1. Creating SmartHome...")
clock = MockClock(datetime(2025, 1, 15, 5, 55))
home = SmartHome(clock=clock)
for device in home.list_devices():
    print(f"   ✓ {device['name']} ({device['type']}): {device['attributes']}")

# 2. Watch the event stream
print("\n2. Subscribing a display...")


def display(event):
    if event.type == STATE_CHANGED:
        p = event.payload
        print(f"   → {event.device}.{p['attribute']}: {p['old']} → {p['new']} (depth {event.depth})")
    elif event.type == RULE_TRIGGERED:
        print(f"   → rule {event.payload['rule_id']} fired: {event.payload['action']}")


home.subscribe(display)
print("   ✓ Display subscribed")

# 3. A rule: light on -> warm the bedroom
print("\n3. Defining rules...")
home.define_rule_text(
    "Living Room Light", "power = on", "Bedroom Thermostat", "temperature = 72"
)
for rule in home.list_rules():
    print(f"   ✓ {rule.id}: {rule.describe()}")

# 4. A morning task
print("\n4. Scheduling tasks...")
home.schedule_task("Living Room Light", "power", True, "06:00", recurrence="daily")
for task in home.list_tasks():
    print(f"   ✓ {task.id}: {task.describe()}")

# 5. Advance time past the trigger
print("\n5. Advancing clock to 06:00...")
clock.advance(minutes=5, seconds=20)
fired = home.tick()
print(f"   ✓ Fired tasks: {fired}")
home.pump()

# 6. A user command
print("\n6. Issuing a command...")
home.issue_command("Front Door Camera", "armed", True)
home.pump()

# 7. Execution log
print("\n7. Execution log:")
for entry in home.execution_log():
    print(f"   ✓ [{entry.origin.value}] {entry.device}.{entry.attribute} = {entry.new}")

print("\n" + "=" * 60)
print("Example complete!")
print("=" * 60)
