import json
import sys


class SSPConfig:
    """A simple class to load and manage the driver configuration from a JSON file."""
    def __init__(self, config_path='config.json'):
        try:
            with open(config_path, 'r') as f:
                config_data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            print(f"Error: Could not load or parse {config_path}. {e}")
            print("Please ensure 'config.json' exists and is correctly formatted.")
            sys.exit(1)

        ssp = config_data.get("ssp") or {}
        # keep names close to JSON keys for clarity
        self.port_name: str = ssp.get("port_name")
        self.baud_rate: int = int(ssp.get("baud_rate", 9600))
        self.slave_id: int = int(ssp.get("slave_id", 0))
        proto = ssp.get("host_protocol_version")
        self.host_protocol_version: int | None = int(proto) if proto is not None else None
        self.read_timeout: float = float(ssp.get("read_timeout", 0.5))
        self.poll_ms: int = int(ssp.get("poll_ms", 250))

        # Validate that essential keys are present
        if not self.port_name:
            print("Error: 'ssp.port_name' is required in config.json.")
            sys.exit(1)

    def to_dict(self) -> dict:
        return {
            "ssp": {
                "port_name": self.port_name,
                "baud_rate": self.baud_rate,
                "slave_id": self.slave_id,
                "host_protocol_version": self.host_protocol_version,
                "read_timeout": self.read_timeout,
                "poll_ms": self.poll_ms,
            },
        }
