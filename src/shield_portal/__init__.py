"""CyberShield portal: realtime order notifications and phone OTP verification."""

__version__ = "0.1.0"
