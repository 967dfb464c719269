import socket

# Public DNS resolvers tried in order: Cloudflare, Google, OpenDNS, Quad9
DNS_HOSTS = [
    ("1.1.1.1", 53),
    ("8.8.8.8", 53),
    ("208.67.222.222", 53),
    ("9.9.9.9", 53),
]


def check_internet_connectivity(timeout: float = 2.0) -> bool:
    """
    Check if the system can reach the internet by opening a TCP connection
    to one of several public DNS servers.

    Args:
        timeout: Connection timeout in seconds, per host

    Returns:
        True if any host accepted the connection, False otherwise
    """
    for host in DNS_HOSTS:
        try:
            conn = socket.create_connection(host, timeout=timeout)
        except OSError:
            continue
        try:
            conn.close()
        except (OSError, AttributeError):
            pass
        return True
    return False
