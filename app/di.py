# app/di.py
from dataclasses import dataclass
from typing import Optional

from app.config import Settings
from app.services.filesystem import FileBrowserService
from app.services.filters import ExtensionFilter
from app.services.policy import AllowAllPolicy, ReadOnlyPolicy

@dataclass
class Container:
    settings: Settings
    fb_service: FileBrowserService

def build_container(settings: Optional[Settings] = None) -> Container:
    s = settings or Settings()

    # Provisioning: the sandbox itself never creates its root
    s.SANDBOX_ROOT.mkdir(parents=True, exist_ok=True)

    policy = ReadOnlyPolicy() if s.READ_ONLY else AllowAllPolicy()
    fb = FileBrowserService(
        s.SANDBOX_ROOT,
        extension_filter=ExtensionFilter.from_spec(s.FILE_FILTER),
        policy=policy,
    )

    return Container(s, fb)
