"""AppSketch: AI-assisted mobile app mockup builder core."""

__version__ = "0.1.0"
