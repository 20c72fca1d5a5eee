"""Bridge between Devola heaters on Tasmota serial bridges and normalized MQTT topics."""

__version__ = "0.1.0"
