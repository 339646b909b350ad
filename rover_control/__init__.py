"""Shared rover control over MQTT.

Many clients compete for one remotely driven rover:
- a control server owns the rover and an access broker (FIFO wait line)
- only the client at the head of the line has its commands forwarded
- driving clients request control, drive, and cede control

See `python -m rover_control.app -h` for how to run.
"""
