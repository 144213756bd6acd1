from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_PROTOCOL = "socket"

DEFAULT_PORTS = {
    "ipp": 631,
    "ipps": 631,
    "lpd": 515,
    "http": 80,
    "https": 443,
    "socket": 9100,
}


def default_port(protocol: Optional[str]) -> int:
    return DEFAULT_PORTS.get((protocol or "").lower(), DEFAULT_PORTS[DEFAULT_PROTOCOL])


@dataclass(frozen=True)
class PrinterDescriptor:
    """A printer as delivered by the central roster."""
    id: Any
    name: str
    mac_address: Optional[str] = None
    external_ip: Optional[str] = None
    driver: str = "generic"
    protocol: str = DEFAULT_PROTOCOL
    port: int = DEFAULT_PORTS[DEFAULT_PROTOCOL]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PrinterDescriptor":
        protocol = (data.get("protocol") or DEFAULT_PROTOCOL).lower()
        port = data.get("port") or default_port(protocol)
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            mac_address=data.get("mac_address") or None,
            external_ip=data.get("ip_address") or None,
            driver=data.get("driver") or "generic",
            protocol=protocol,
            port=int(port),
            raw=dict(data),
        )


@dataclass
class ResolvedPrinter:
    """Outcome of resolving one printer."""
    printer: PrinterDescriptor
    resolved_ip: Optional[str] = None
    port_open: bool = False
    path: Optional[str] = None
    method: Optional[str] = None  # cache, neighbor, scan, external

    @property
    def resolved(self) -> bool:
        return self.resolved_ip is not None

    @property
    def port(self) -> int:
        return self.printer.port

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the local sync endpoint, keeping unknown roster fields."""
        if not self.printer.mac_address:
            return dict(self.printer.raw)

        payload = dict(self.printer.raw)
        if self.resolved_ip is not None:
            payload["ip_address"] = self.resolved_ip
        payload["connectivity"] = {
            "port": {
                "open": self.port_open,
                "number": self.printer.port,
            }
        }
        if self.path:
            payload["path"] = self.path
        return payload
