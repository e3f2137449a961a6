"""Process roles run inside every SwiftStorage pod."""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import (
    ACCOUNT_SERVER_PORT,
    CONTAINER_SERVER_PORT,
    MEMCACHED_PORT,
    OBJECT_SERVER_PORT,
    RSYNC_PORT,
)


@dataclass(frozen=True)
class Role:
    """A container role in the storage pod.

    Attributes:
        name: Container name
        image: Logical domain selecting the image from the desired state
        command: Command line
        port: Container port, for externally reachable roles
        port_name: Name of the container port
        mounts: Whether the role mounts the shared storage and config volumes
    """

    name: str
    image: str
    command: tuple[str, ...]
    port: int | None = None
    port_name: str | None = None
    mounts: bool = True


def _swift_daemon(domain: str, process: str, port: int | None = None) -> Role:
    return Role(
        name=f"{domain}-{process}",
        image=domain,
        command=(f"/usr/bin/swift-{domain}-{process}", f"/etc/swift/{domain}-server.conf", "-v"),
        port=port,
        port_name=domain if port is not None else None,
    )


INIT_ROLES: tuple[Role, ...] = (
    Role(
        name="swift-init",
        image="account",
        command=(
            "/bin/sh",
            "-c",
            "cp -t /etc/swift/ /var/lib/config-data/default/* /var/lib/config-data/rings/*",
        ),
    ),
)

SERVICE_ROLES: tuple[Role, ...] = (
    _swift_daemon("account", "server", ACCOUNT_SERVER_PORT),
    _swift_daemon("account", "replicator"),
    _swift_daemon("account", "auditor"),
    _swift_daemon("account", "reaper"),
    _swift_daemon("container", "server", CONTAINER_SERVER_PORT),
    _swift_daemon("container", "replicator"),
    _swift_daemon("container", "auditor"),
    _swift_daemon("container", "updater"),
    _swift_daemon("object", "server", OBJECT_SERVER_PORT),
    _swift_daemon("object", "replicator"),
    _swift_daemon("object", "auditor"),
    _swift_daemon("object", "updater"),
    Role(
        name="object-expirer",
        image="proxy",
        command=("/usr/bin/swift-object-expirer", "/etc/swift/object-expirer.conf", "-v"),
    ),
    Role(
        name="rsync",
        image="object",
        command=(
            "/usr/bin/rsync",
            "--daemon",
            "--no-detach",
            "--config=/etc/swift/rsyncd.conf",
            "--log-file=/dev/stdout",
        ),
        port=RSYNC_PORT,
        port_name="rsync",
    ),
    Role(
        name="memcached",
        image="memcached",
        command=("/usr/bin/memcached", "-p", str(MEMCACHED_PORT), "-u", "memcached"),
        port=MEMCACHED_PORT,
        port_name="memcached",
        mounts=False,
    ),
)
