"""Tests for the CLI module."""

import io
import json
import os
import stat
import subprocess
import sys
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from jwk_convert.cli import convert


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def ec_key_files(temp_dir):
    """Write a P-256 key pair as PEM files."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_file = temp_dir / "ec_private.pem"
    public_file = temp_dir / "ec_public.pem"
    private_file.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_file.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return private_file, public_file


@pytest.fixture
def rsa_der_file(temp_dir):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    der_file = temp_dir / "rsa_public.der"
    der_file.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return der_file


def _run(argv, capsys):
    with patch("sys.argv", ["jwk-convert", *argv]):
        convert()
    return json.loads(capsys.readouterr().out)


class TestConvert:
    """Tests for the convert function."""

    def test_convert_public_key(self, ec_key_files, capsys):
        _private_file, public_file = ec_key_files

        jwk = _run([str(public_file)], capsys)

        assert list(jwk) == ["kty", "crv", "x", "y"]
        assert jwk["crv"] == "P-256"

    def test_convert_private_key(self, ec_key_files, capsys):
        private_file, _public_file = ec_key_files

        jwk = _run([str(private_file)], capsys)

        assert "d" in jwk

    def test_public_flag_strips_private_members(self, ec_key_files, capsys):
        private_file, public_file = ec_key_files

        from_private = _run([str(private_file), "--public"], capsys)
        from_public = _run([str(public_file)], capsys)

        assert from_private == from_public

    def test_metadata_options(self, ec_key_files, capsys):
        _private_file, public_file = ec_key_files

        jwk = _run(
            [str(public_file), "--alg", "ES256", "--use", "sig", "--kid", "k1"], capsys
        )

        assert list(jwk)[-3:] == ["alg", "use", "kid"]
        assert jwk["alg"] == "ES256"
        assert jwk["use"] == "sig"
        assert jwk["kid"] == "k1"

    def test_auto_alg_and_thumbprint_kid(self, ec_key_files, capsys):
        private_file, public_file = ec_key_files

        from_private = _run(
            [str(private_file), "--alg", "auto", "--thumbprint-kid"], capsys
        )
        from_public = _run([str(public_file), "--alg", "auto", "--thumbprint-kid"], capsys)

        assert from_private["alg"] == "ES256"
        assert from_private["kid"] == from_public["kid"]
        assert len(from_public["kid"]) == 43

    def test_kid_options_are_exclusive(self, ec_key_files):
        _private_file, public_file = ec_key_files
        with patch(
            "sys.argv",
            ["jwk-convert", str(public_file), "--kid", "k1", "--thumbprint-kid"],
        ):
            with pytest.raises(SystemExit) as exc_info:
                convert()
        assert exc_info.value.code == 2

    def test_der_input_with_format(self, rsa_der_file, capsys):
        jwk = _run([str(rsa_der_file), "--format", "DER"], capsys)

        assert jwk["kty"] == "RSA"
        assert jwk["e"] == "AQAB"

    def test_multiple_keys_make_jwks(self, ec_key_files, rsa_der_file, capsys):
        _private_file, public_file = ec_key_files

        document = _run([str(public_file), str(rsa_der_file)], capsys)

        assert [key["kty"] for key in document["keys"]] == ["EC", "RSA"]

    def test_jwks_flag_single_key(self, ec_key_files, capsys):
        _private_file, public_file = ec_key_files

        document = _run([str(public_file), "--jwks"], capsys)

        assert list(document) == ["keys"]
        assert len(document["keys"]) == 1

    def test_compact_output(self, ec_key_files, capsys):
        _private_file, public_file = ec_key_files
        with patch("sys.argv", ["jwk-convert", str(public_file), "--indent", "0"]):
            convert()

        out = capsys.readouterr().out
        assert out.count("\n") == 1
        assert json.loads(out)["kty"] == "EC"

    def test_convert_from_stdin(self, ec_key_files, capsys, monkeypatch):
        """Test converting a key read from stdin."""
        _private_file, public_file = ec_key_files

        class MockStdin:
            def __init__(self, data):
                self.buffer = io.BytesIO(data)

        monkeypatch.setattr("sys.stdin", MockStdin(public_file.read_bytes()))

        jwk = _run([], capsys)

        assert jwk["kty"] == "EC"

    def test_okp_key(self, temp_dir, capsys):
        key_file = temp_dir / "ed25519.pem"
        key_file.write_bytes(
            ed25519.Ed25519PrivateKey.generate()
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

        jwk = _run([str(key_file), "--alg", "auto"], capsys)

        assert jwk["kty"] == "OKP"
        assert jwk["alg"] == "EdDSA"


class TestOutputFile:
    def test_file_permissions_public_key(self, ec_key_files, temp_dir):
        """A public JWK is written with 644 permissions."""
        _private_file, public_file = ec_key_files
        output_file = temp_dir / "public.jwk"

        with patch(
            "sys.argv",
            ["jwk-convert", str(public_file), "--output", str(output_file)],
        ):
            convert()

        assert json.loads(output_file.read_text())["kty"] == "EC"
        file_mode = stat.filemode(os.stat(output_file).st_mode)
        assert file_mode == "-rw-r--r--"

    def test_file_permissions_private_key(self, ec_key_files, temp_dir):
        """A JWK with private members is written with 600 permissions."""
        private_file, _public_file = ec_key_files
        output_file = temp_dir / "private.jwk"

        with patch(
            "sys.argv",
            ["jwk-convert", str(private_file), "--output", str(output_file)],
        ):
            convert()

        assert "d" in json.loads(output_file.read_text())
        file_mode = stat.filemode(os.stat(output_file).st_mode)
        assert file_mode == "-rw-------"

    def test_private_key_file_is_created_restricted(self, ec_key_files, temp_dir):
        """The 600 mode is set at creation, not only by a later chmod."""
        private_file, _public_file = ec_key_files
        output_file = temp_dir / "private.jwk"

        old_umask = os.umask(0o022)
        try:
            with patch("jwk_convert.cli.os.chmod"), patch(
                "sys.argv",
                ["jwk-convert", str(private_file), "--output", str(output_file)],
            ):
                convert()
        finally:
            os.umask(old_umask)

        file_mode = stat.filemode(os.stat(output_file).st_mode)
        assert file_mode == "-rw-------"

    def test_existing_file_is_restricted_for_private_key(self, ec_key_files, temp_dir):
        private_file, _public_file = ec_key_files
        output_file = temp_dir / "private.jwk"
        output_file.write_text("old contents")
        os.chmod(output_file, 0o644)

        with patch(
            "sys.argv",
            ["jwk-convert", str(private_file), "--output", str(output_file)],
        ):
            convert()

        assert "d" in json.loads(output_file.read_text())
        file_mode = stat.filemode(os.stat(output_file).st_mode)
        assert file_mode == "-rw-------"


class TestErrorHandling:
    """Tests for error handling and exit codes."""

    @pytest.mark.parametrize(
        "content, code",
        [
            (b"-----BEGIN PUBLIC KEY-----\nAAAA\n", 3),
            (b"\x30\x03\x02\x01", 4),
            (b"-----BEGIN PUBLIC KEY-----\n!!\n-----END PUBLIC KEY-----\n", 3),
        ],
    )
    def test_decode_error_exit_codes(self, temp_dir, content, code, capsys):
        key_file = temp_dir / "bad.pem"
        key_file.write_bytes(content)

        with patch("sys.argv", ["jwk-convert", str(key_file)]):
            with pytest.raises(SystemExit) as exc_info:
                convert()

        assert exc_info.value.code == code
        assert capsys.readouterr().err.startswith("Error: ")

    def test_unsupported_curve_exit_code(self, temp_dir):
        key_file = temp_dir / "p224.pem"
        key_file.write_bytes(
            ec.generate_private_key(ec.SECP224R1())
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

        with patch("sys.argv", ["jwk-convert", str(key_file)]):
            with pytest.raises(SystemExit) as exc_info:
                convert()

        assert exc_info.value.code == 6

    def test_file_not_found_handling(self, temp_dir, capsys):
        with patch("sys.argv", ["jwk-convert", str(temp_dir / "missing.pem")]):
            with pytest.raises(SystemExit) as exc_info:
                convert()

        assert exc_info.value.code == 1
        assert "Failed to read input" in capsys.readouterr().err

    def test_invalid_format_choice(self, ec_key_files):
        _private_file, public_file = ec_key_files
        with patch("sys.argv", ["jwk-convert", str(public_file), "--format", "JWK"]):
            with pytest.raises(SystemExit) as exc_info:
                convert()
        assert exc_info.value.code == 2

    def test_stdin_twice(self):
        with patch("sys.argv", ["jwk-convert", "-", "-"]):
            with pytest.raises(SystemExit) as exc_info:
                convert()
        assert exc_info.value.code == 2


class TestCLIIntegration:
    """Integration tests running the CLI as a module."""

    def test_module_help(self):
        result = subprocess.run(
            [sys.executable, "-m", "jwk_convert", "--help"],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0
        assert "--thumbprint-kid" in result.stdout
        assert "JWK" in result.stdout

    def test_module_converts_stdin(self, ec_key_files):
        _private_file, public_file = ec_key_files
        result = subprocess.run(
            [sys.executable, "-m", "jwk_convert", "--indent", "0"],
            input=public_file.read_bytes(),
            capture_output=True,
        )

        assert result.returncode == 0
        assert json.loads(result.stdout)["crv"] == "P-256"
