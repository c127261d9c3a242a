from __future__ import annotations

from tidyfs.config.schema import AppConfig, SafetyPolicy, ScanSettings
from tidyfs.models.category import Category
from tidyfs.models.enums import RiskLevel
from tidyfs.services.env import DEFAULT_ENV, Environment


def default_categories(env: Environment = DEFAULT_ENV) -> list[Category]:
    home = env.real_user_home()

    return [
        # ── Package managers ──
        Category(
            "Pacman Cache",
            ["/var/cache/pacman/pkg"],
            selected=True,
        ),
        Category(
            "Yay Cache",
            [f"{home}/.cache/yay"],
            selected=True,
        ),
        Category(
            "Paru Cache",
            [f"{home}/.cache/paru"],
            selected=True,
        ),
        Category(
            "Pamac Cache",
            [f"{home}/.cache/pamac"],
            selected=True,
        ),
        Category(
            "APT Cache (Debian/Ubuntu)",
            ["/var/cache/apt/archives"],
            filters=[r"\.deb$"],
            selected=True,
        ),
        Category(
            "DNF Cache (Fedora/RHEL)",
            ["/var/cache/dnf"],
            selected=True,
        ),
        Category(
            "Zypper Cache (openSUSE)",
            ["/var/cache/zypp"],
            selected=True,
        ),
        # ── Temporary files ──
        Category(
            "System Temp",
            ["/var/tmp"],
            selected=True,
        ),
        Category(
            "Temporary Backups",
            ["/tmp"],
            filters=[r"\.(tmp|temp|bak|backup)$"],
            risk=RiskLevel.MEDIUM,
            shred_enabled=True,
        ),
        # ── User caches ──
        Category(
            "Thumbnails",
            [f"{home}/.cache/thumbnails"],
            min_age_days=30,
            selected=True,
        ),
        Category(
            "Browser Cache",
            [
                f"{home}/.cache/mozilla",
                f"{home}/.cache/firefox",
                f"{home}/.cache/zen",
                f"{home}/.cache/BraveSoftware",
                f"{home}/.cache/google-chrome",
                f"{home}/.cache/chromium",
            ],
            selected=True,
        ),
        Category(
            "Font Cache",
            [f"{home}/.cache/fontconfig"],
            selected=True,
        ),
        Category(
            "Mesa Shader Cache",
            [f"{home}/.cache/mesa_shader_cache"],
            selected=True,
        ),
        Category(
            "WebKit Cache",
            [f"{home}/.cache/webkit", f"{home}/.cache/webkitgtk"],
            selected=True,
        ),
        Category(
            "Flatpak App Caches",
            [f"{home}/.var/app/*/cache"],
            risk=RiskLevel.MEDIUM,
        ),
        # ── Logs ──
        Category(
            "System Logs",
            ["/var/log"],
            filters=[r"\.(log|old|gz|[0-9])$"],
            selected=True,
        ),
        Category(
            "Systemd Journal",
            ["/var/log/journal"],
            filters=[r"\.journal~?$"],
            risk=RiskLevel.MEDIUM,
        ),
        Category(
            "Application Logs",
            [f"{home}/.local/share/xorg"],
            filters=[r"\.(log|old)$"],
            selected=True,
        ),
        # ── Trash and crash dumps ──
        Category(
            "Trash",
            [f"{home}/.local/share/Trash"],
        ),
        Category(
            "Crash Reports",
            ["/var/crash", f"{home}/.local/share/apport/coredump"],
            selected=True,
        ),
        # ── Media servers ──
        Category(
            "Plex Transcode",
            ["/var/lib/plexmediaserver/Library/Application Support/Plex Media Server/Cache/Transcode"],
        ),
        Category(
            "Jellyfin Transcode",
            ["/var/lib/jellyfin/transcodes"],
        ),
        # ── Development tools ──
        Category(
            "pip Cache",
            [f"{home}/.cache/pip"],
            selected=True,
        ),
        Category(
            "npm Cache",
            [f"{home}/.npm/_cacache", f"{home}/.cache/npm"],
            selected=True,
        ),
        Category(
            "Cargo Registry Cache",
            [f"{home}/.cargo/registry/cache"],
            selected=True,
        ),
        Category(
            "Gradle Cache",
            [f"{home}/.gradle/caches"],
            selected=True,
        ),
        Category(
            "Go Build Cache",
            [f"{home}/.cache/go-build"],
            selected=True,
        ),
        Category(
            "Maven Repository",
            [f"{home}/.m2/repository"],
            risk=RiskLevel.MEDIUM,
        ),
        # ── Containers ──
        Category(
            "Docker Container Logs",
            ["/var/lib/docker/containers"],
            filters=[r"\.log$"],
            risk=RiskLevel.MEDIUM,
        ),
    ]


def default_config(env: Environment = DEFAULT_ENV) -> AppConfig:
    return AppConfig(
        scan=ScanSettings(),
        safety=SafetyPolicy(),
        categories=default_categories(env),
    )
