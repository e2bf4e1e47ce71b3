"""Local and FTPS storage backends."""

import re
from ftplib import error_perm, error_temp

import pytest

from app.core.exceptions import StorageError
from app.services.storage import (
    StorageConfig,
    StorageService,
    UploadedFile,
    folder_name,
    unique_filename,
)


FTPS_CONFIG = dict(
    storage_type="ftps",
    ftp_host="ftp.example.com",
    ftp_port=2121,
    ftp_user="branding",
    ftp_password="s3cret",
    base_public_path="/public_html/media",
    base_public_url="https://cdn.example.com/media",
)


class FakeFTP:
    """Stand-in for ftplib.FTP_TLS that keeps files in memory."""

    instances = []

    def __init__(self, context=None):
        self.context = context
        self.dirs = {"/", "/public_html", "/public_html/media"}
        self.cwd_path = "/"
        self.files = {}
        self.calls = []
        self.closed = False
        FakeFTP.instances.append(self)

    def connect(self, host, port, timeout=None):
        self.calls.append(("connect", host, port))

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def prot_p(self):
        self.calls.append(("prot_p",))

    def _join(self, part):
        return "/" + "/".join(p for p in (self.cwd_path.strip("/"), part.strip("/")) if p)

    def cwd(self, path):
        target = "/" if path == "/" else self._join(path)
        if target not in self.dirs:
            raise error_perm(f"550 {target}: No such directory")
        self.cwd_path = target

    def mkd(self, path):
        self.dirs.add(self._join(path))

    def storbinary(self, command, fp):
        name = command.split(" ", 1)[1]
        self.files[self._join(name)] = fp.read()

    def delete(self, path):
        if path not in self.files:
            raise error_perm("550 not found")
        del self.files[path]

    def quit(self):
        self.closed = True

    def close(self):
        self.closed = True


class BrokenFTP(FakeFTP):
    def connect(self, host, port, timeout=None):
        raise error_temp("421 Service not available")


@pytest.fixture(autouse=True)
def reset_fake_ftp():
    FakeFTP.instances = []


def _upload(name="shop front.JPG", content=b"jpeg-bytes"):
    return UploadedFile(filename=name, content=content, content_type="image/jpeg")


def test_unique_filename_shape():
    name = unique_filename("../../Shop Front!.JPG")
    assert re.fullmatch(r"\d{13}_[0-9a-f]{16}_Shop_Front\.jpg", name)
    assert unique_filename("a.png") != unique_filename("a.png")


def test_folder_name():
    assert folder_name("ACM", "MUMMUMDLR001") == "ACMMUMMUMDLR001"
    assert folder_name(None, "MUMMUMDLR001") == "MUMMUMDLR001"
    assert folder_name(None, None) == "unassigned"


def test_local_upload_read_delete(tmp_path):
    storage = StorageService(StorageConfig(local_root=str(tmp_path / "uploads")))

    reference = storage.upload(_upload(), "recce", "ACM", "MUMMUMDLR001")

    assert reference.startswith("uploads/recce/ACMMUMMUMDLR001/")
    assert reference.endswith("_shop_front.jpg")
    written = tmp_path / "uploads" / reference[len("uploads/"):]
    assert written.read_bytes() == b"jpeg-bytes"
    assert storage.read_local(reference) == b"jpeg-bytes"

    assert storage.delete(reference) is True
    assert not written.exists()
    assert storage.delete(reference) is False


def test_local_references_cannot_escape_root(tmp_path):
    (tmp_path / "secret.txt").write_text("nope")
    storage = StorageService(StorageConfig(local_root=str(tmp_path / "uploads")))

    assert storage.read_local("uploads/../secret.txt") is None
    assert storage.read_local("elsewhere/secret.txt") is None
    assert storage.delete("uploads/../secret.txt") is False


def test_local_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "uploads"
    blocker.write_text("a file where the directory should be")
    storage = StorageService(StorageConfig(local_root=str(blocker)))

    with pytest.raises(StorageError):
        storage.upload(_upload(), "recce", None, "S1")


def test_public_url(tmp_path):
    storage = StorageService(StorageConfig(local_root=str(tmp_path), base_local_url="https://api.example.com/"))
    assert storage.public_url("uploads/recce/S1/a.jpg") == "https://api.example.com/uploads/recce/S1/a.jpg"
    assert storage.public_url("https://cdn.example.com/x.jpg") == "https://cdn.example.com/x.jpg"

    bare = StorageService(StorageConfig(local_root=str(tmp_path)))
    assert bare.public_url("uploads/recce/S1/a.jpg") == "/uploads/recce/S1/a.jpg"


def test_ftps_upload_creates_remote_folders(tmp_path):
    config = StorageConfig(local_root=str(tmp_path / "uploads"), **FTPS_CONFIG)
    storage = StorageService(config, ftp_factory=FakeFTP)

    reference = storage.upload(_upload(), "installation", "ACM", "MUMMUMDLR001")

    ftp = FakeFTP.instances[0]
    filename = reference.rsplit("/", 1)[1]
    assert reference == f"https://cdn.example.com/media/installation/ACMMUMMUMDLR001/{filename}"
    assert ftp.files == {f"/public_html/media/installation/ACMMUMMUMDLR001/{filename}": b"jpeg-bytes"}
    assert ftp.calls[:3] == [
        ("connect", "ftp.example.com", 2121),
        ("login", "branding", "s3cret"),
        ("prot_p",),
    ]
    assert ftp.closed
    assert not (tmp_path / "uploads").exists()


def test_ftps_opens_one_connection_per_upload(tmp_path):
    storage = StorageService(StorageConfig(local_root=str(tmp_path), **FTPS_CONFIG), ftp_factory=FakeFTP)
    storage.upload(_upload(), "recce", None, "S1")
    storage.upload(_upload(), "recce", None, "S1")
    assert len(FakeFTP.instances) == 2


def test_ftps_failure_falls_back_to_local(tmp_path, caplog):
    config = StorageConfig(local_root=str(tmp_path / "uploads"), **FTPS_CONFIG)
    storage = StorageService(config, ftp_factory=BrokenFTP)

    with caplog.at_level("WARNING", logger="storage"):
        reference = storage.upload(_upload(), "recce", "ACM", "S1")

    assert reference.startswith("uploads/recce/ACMS1/")
    assert storage.read_local(reference) == b"jpeg-bytes"
    assert "FTPS_UPLOAD_FAILED" in caplog.text


def test_ftps_delete_maps_url_to_remote_path(tmp_path):
    storage = StorageService(StorageConfig(local_root=str(tmp_path), **FTPS_CONFIG), ftp_factory=FakeFTP)
    reference = storage.upload(_upload(), "recce", None, "S1")
    filename = reference.rsplit("/", 1)[1]

    class SharedFTP(FakeFTP):
        def __init__(self, context=None):
            super().__init__(context)
            self.files = {f"/public_html/media/recce/S1/{filename}": b"jpeg-bytes"}

    storage.ftps._ftp_factory = SharedFTP
    assert storage.delete(reference) is True
    assert storage.delete(reference.replace(filename, "missing.jpg")) is False


class RefusingFTP(FakeFTP):
    def connect(self, host, port, timeout=None):
        raise ConnectionRefusedError(111, "Connection refused")


def test_ftps_delete_returns_false_when_server_unreachable(tmp_path, caplog):
    storage = StorageService(StorageConfig(local_root=str(tmp_path), **FTPS_CONFIG), ftp_factory=RefusingFTP)

    with caplog.at_level("WARNING", logger="storage"):
        deleted = storage.delete("https://cdn.example.com/media/recce/S1/front.jpg")

    assert deleted is False
    assert "FTPS_DELETE_FAILED" in caplog.text
    assert "/public_html/media/recce/S1/front.jpg" in caplog.text


def test_describe_masks_password_and_lists_missing_settings():
    config = StorageConfig(storage_type="ftps", ftp_host="ftp.example.com", ftp_password="s3cret")
    described = config.describe()

    assert described["ftpPassword"] == "********"
    assert described["ftpsConfigured"] is False
    assert described["missingFtpsSettings"] == ["FTP_USER", "BASE_PUBLIC_PATH", "BASE_PUBLIC_URL"]
    assert "s3cret" not in str(described)


def test_from_settings_reads_storage_type():
    class Settings:
        STORAGE_TYPE = "FTPS"
        FTP_HOST = "h"
        FTP_PORT = 21
        FTP_USER = "u"
        FTP_PASSWORD = "p"
        FTP_VERIFY_TLS = False
        BASE_PUBLIC_PATH = "/p"
        BASE_PUBLIC_URL = "https://x"
        UPLOADS_DIR = "media"
        BASE_LOCAL_URL = ""

    config = StorageConfig.from_settings(Settings)
    assert config.use_ftps
    assert config.local_root == "media"
    assert config.ftp_verify_tls is False
