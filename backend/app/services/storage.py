"""
File Storage Service

Stores workflow photos either on the local filesystem or on an FTPS server.

Layout:
- local: <local_root>/<folderType>/<clientCode><storeId>/<file>
         referenced as "uploads/<folderType>/<clientCode><storeId>/<file>"
- ftps:  <base_public_path>/<folderType>/<clientCode><storeId>/<file>
         referenced as "<base_public_url>/<folderType>/<clientCode><storeId>/<file>"

One FTPS connection is opened per upload. When an FTPS upload fails the
file is written to local storage instead (once, no retry loop).

The service never reads the environment; it is built from a StorageConfig.

Usage:
    storage = StorageService(StorageConfig.from_settings(settings))
    ref = storage.upload(UploadedFile("shop.jpg", data, "image/jpeg"), "recce", "ACMEDE", "MUMMUMDLR001")
"""

import logging
import os
import re
import secrets
import ssl
import time
from dataclasses import dataclass
from ftplib import FTP_TLS, all_errors, error_perm
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Optional

from app.core.exceptions import StorageError


logger = logging.getLogger("storage")

# Reference prefix for files kept on local disk (also the static mount path)
LOCAL_PREFIX = "uploads"

STORAGE_LOCAL = "local"
STORAGE_FTPS = "ftps"


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded file fully read into memory."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class StorageConfig:
    storage_type: str = STORAGE_LOCAL
    ftp_host: str = ""
    ftp_port: int = 21
    ftp_user: str = ""
    ftp_password: str = ""
    ftp_verify_tls: bool = True
    base_public_path: str = ""
    base_public_url: str = ""
    local_root: str = LOCAL_PREFIX
    base_local_url: str = ""

    @classmethod
    def from_settings(cls, settings) -> "StorageConfig":
        return cls(
            storage_type=(settings.STORAGE_TYPE or STORAGE_LOCAL).lower(),
            ftp_host=settings.FTP_HOST,
            ftp_port=settings.FTP_PORT,
            ftp_user=settings.FTP_USER,
            ftp_password=settings.FTP_PASSWORD,
            ftp_verify_tls=settings.FTP_VERIFY_TLS,
            base_public_path=settings.BASE_PUBLIC_PATH,
            base_public_url=settings.BASE_PUBLIC_URL,
            local_root=settings.UPLOADS_DIR,
            base_local_url=settings.BASE_LOCAL_URL,
        )

    @property
    def use_ftps(self) -> bool:
        return self.storage_type == STORAGE_FTPS

    def missing_ftps_settings(self) -> List[str]:
        """Names of the FTPS settings that are still empty."""
        required = {
            "FTP_HOST": self.ftp_host,
            "FTP_USER": self.ftp_user,
            "FTP_PASSWORD": self.ftp_password,
            "BASE_PUBLIC_PATH": self.base_public_path,
            "BASE_PUBLIC_URL": self.base_public_url,
        }
        return [name for name, value in required.items() if not value]

    def describe(self) -> dict:
        """Configuration report with the password masked."""
        missing = self.missing_ftps_settings()
        return {
            "storageType": self.storage_type,
            "ftpHost": self.ftp_host or None,
            "ftpPort": self.ftp_port,
            "ftpUser": self.ftp_user or None,
            "ftpPassword": "********" if self.ftp_password else None,
            "ftpVerifyTls": self.ftp_verify_tls,
            "basePublicPath": self.base_public_path or None,
            "basePublicUrl": self.base_public_url or None,
            "localRoot": self.local_root,
            "ftpsConfigured": not missing,
            "missingFtpsSettings": missing,
        }


def unique_filename(original: str) -> str:
    """<epochMillis>_<16 hex>_<base><ext>, base reduced to safe characters."""
    base, ext = os.path.splitext(os.path.basename(original or ""))
    base = re.sub(r"[^A-Za-z0-9_-]+", "_", base).strip("_")[:50] or "file"
    ext = re.sub(r"[^A-Za-z0-9.]", "", ext.lower())
    return f"{int(time.time() * 1000)}_{secrets.token_hex(8)}_{base}{ext}"


def folder_name(client_code: Optional[str], store_id: Optional[str]) -> str:
    name = f"{client_code or ''}{store_id or ''}"
    name = re.sub(r"[^A-Za-z0-9_-]+", "_", name)
    return name or "unassigned"


class LocalStorage:
    """Files under a local directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def save(self, folder_type: str, folder: str, filename: str, content: bytes) -> str:
        directory = self.root / folder_type / folder
        directory.mkdir(parents=True, exist_ok=True)
        (directory / filename).write_bytes(content)
        return f"{LOCAL_PREFIX}/{folder_type}/{folder}/{filename}"

    def path_for(self, reference: str) -> Optional[Path]:
        """Map a stored reference back to a path inside the root, or None."""
        ref = reference.lstrip("/")
        if not ref.startswith(f"{LOCAL_PREFIX}/"):
            return None
        candidate = (self.root / ref[len(LOCAL_PREFIX) + 1:]).resolve()
        root = self.root.resolve()
        if root != candidate and root not in candidate.parents:
            return None
        return candidate

    def read(self, reference: str) -> Optional[bytes]:
        path = self.path_for(reference)
        if path is None or not path.is_file():
            return None
        return path.read_bytes()

    def delete(self, reference: str) -> bool:
        path = self.path_for(reference)
        if path is None or not path.is_file():
            return False
        path.unlink()
        return True


class FtpsStorage:
    """Files on an FTPS server exposed under a public URL."""

    def __init__(self, config: StorageConfig, ftp_factory: Callable = FTP_TLS):
        self.config = config
        self._ftp_factory = ftp_factory

    def _connect(self):
        context = ssl.create_default_context()
        if not self.config.ftp_verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        ftp = self._ftp_factory(context=context)
        ftp.connect(self.config.ftp_host, self.config.ftp_port, timeout=30)
        ftp.login(self.config.ftp_user, self.config.ftp_password)
        ftp.prot_p()  # encrypt the data channel too
        return ftp

    @staticmethod
    def _close(ftp) -> None:
        try:
            ftp.quit()
        except all_errors:
            ftp.close()

    @staticmethod
    def _ensure_dir(ftp, path: str) -> None:
        """cd into path, creating every missing segment."""
        if path.startswith("/"):
            ftp.cwd("/")
        for part in path.strip("/").split("/"):
            if not part:
                continue
            try:
                ftp.cwd(part)
            except error_perm:
                ftp.mkd(part)
                ftp.cwd(part)

    def _remote_dir(self, folder_type: str, folder: str) -> str:
        base = self.config.base_public_path.rstrip("/")
        return f"{base}/{folder_type}/{folder}"

    def save(self, folder_type: str, folder: str, filename: str, content: bytes) -> str:
        ftp = self._connect()
        try:
            self._ensure_dir(ftp, self._remote_dir(folder_type, folder))
            ftp.storbinary(f"STOR {filename}", BytesIO(content))
        finally:
            self._close(ftp)
        return f"{self.config.base_public_url.rstrip('/')}/{folder_type}/{folder}/{filename}"

    def owns(self, reference: str) -> bool:
        base = self.config.base_public_url.rstrip("/")
        return bool(base) and reference.startswith(base + "/")

    def delete(self, reference: str) -> bool:
        relative = reference[len(self.config.base_public_url.rstrip("/")):]
        remote = self.config.base_public_path.rstrip("/") + relative
        ftp = None
        try:
            ftp = self._connect()
            ftp.delete(remote)
            return True
        except all_errors as exc:
            logger.warning(f"FTPS_DELETE_FAILED | path={remote} | error={exc}")
            return False
        finally:
            if ftp is not None:
                self._close(ftp)


class StorageService:
    """
    Facade used by the workflow: picks the backend from the config and
    falls back to local storage when FTPS is unavailable.
    """

    def __init__(self, config: StorageConfig, ftp_factory: Callable = FTP_TLS):
        self.config = config
        self.local = LocalStorage(Path(config.local_root))
        self.ftps = FtpsStorage(config, ftp_factory) if config.use_ftps else None

    def upload(
        self,
        upload: UploadedFile,
        folder_type: str,
        client_code: Optional[str] = None,
        store_id: Optional[str] = None,
    ) -> str:
        """Store a file and return its reference (relative path or public URL)."""
        filename = unique_filename(upload.filename)
        folder = folder_name(client_code, store_id)

        if self.ftps is not None:
            try:
                reference = self.ftps.save(folder_type, folder, filename, upload.content)
                logger.info(f"UPLOAD | backend=ftps | folder={folder_type}/{folder} | file={filename}")
                return reference
            except all_errors as exc:
                logger.warning(
                    f"FTPS_UPLOAD_FAILED | folder={folder_type}/{folder} | file={filename} "
                    f"| error={exc} | fallback=local"
                )

        try:
            reference = self.local.save(folder_type, folder, filename, upload.content)
        except OSError as exc:
            logger.error(f"LOCAL_UPLOAD_FAILED | folder={folder_type}/{folder} | error={exc}")
            raise StorageError(f"Could not store file {upload.filename}") from exc
        logger.info(f"UPLOAD | backend=local | folder={folder_type}/{folder} | file={filename}")
        return reference

    def read_local(self, reference: str) -> Optional[bytes]:
        return self.local.read(reference)

    def delete(self, reference: str) -> bool:
        if self.ftps is not None and self.ftps.owns(reference):
            return self.ftps.delete(reference)
        try:
            return self.local.delete(reference)
        except OSError as exc:
            logger.warning(f"LOCAL_DELETE_FAILED | reference={reference} | error={exc}")
            return False

    def public_url(self, reference: str) -> str:
        """Absolute URL for a reference; FTPS references already are one."""
        if reference.startswith(("http://", "https://")):
            return reference
        base = self.config.base_local_url.rstrip("/")
        return f"{base}/{reference.lstrip('/')}" if base else f"/{reference.lstrip('/')}"
