"""DroneScout edge API: Skydio, weather and traffic behind one JSON API"""

__version__ = "1.0.0"
