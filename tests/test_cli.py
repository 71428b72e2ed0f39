import base64
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from solders.hash import Hash
from solders.keypair import Keypair

from solcall.cli import create_parser, main
from solcall.config import SolcallConfig
from solcall.core.signer import load_keypair, write_keypair_file
from solcall.schema import sighash

FIXTURES = Path(__file__).parent / "fixtures"
FLIPPER = str(FIXTURES / "flipper.json")

PROGRAM_ID = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"


def _run(argv):
    stdout = io.StringIO()
    with patch("sys.stdout", stdout):
        code = main(argv)
    return code, stdout.getvalue()


class ParserTests(unittest.TestCase):
    def test_call_arguments(self):
        args = create_parser().parse_args([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "new",
            "--data", "true", "--accounts", "new", "self", "system", "--timeout", "5",
        ])
        self.assertEqual(args.data, ["true"])
        self.assertEqual(args.accounts, ["new", "self", "system"])
        self.assertEqual(args.timeout, 5.0)
        self.assertEqual(args.keypair_dir, ".")
        self.assertFalse(args.strict_decode)

    def test_no_command_prints_help(self):
        with patch("sys.stdout", io.StringIO()):
            self.assertEqual(main([]), 0)


class ShowCommandTests(unittest.TestCase):
    def test_json(self):
        code, out = _run(["show", "--idl", FLIPPER, "--output-json"])
        self.assertEqual(code, 0)
        doc = json.loads(out)
        self.assertEqual(doc["program"], "flipper")
        self.assertEqual([ix["name"] for ix in doc["instructions"]], ["new", "flip", "get"])
        self.assertEqual(doc["instructions"][2]["returns"], "bool")

    def test_single_instruction(self):
        code, out = _run(["show", "--idl", FLIPPER, "-i", "new", "--output-json"])
        doc = json.loads(out)
        self.assertEqual(len(doc["instructions"]), 1)
        self.assertEqual(doc["instructions"][0]["discriminator"], "872ccdc6190148bc")

    def test_unknown_instruction(self):
        code, out = _run(["show", "--idl", FLIPPER, "-i", "explode", "--output-json"])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["kind"], "NotFound")

    def test_text(self):
        code, _ = _run(["show", "--idl", FLIPPER])
        self.assertEqual(code, 0)


class EncodeCommandTests(unittest.TestCase):
    def test_dry_run(self):
        address = str(Keypair().pubkey())
        code, out = _run([
            "encode", "--idl", FLIPPER, "-i", "flip", "--accounts", address,
            "--program", PROGRAM_ID, "--output-json",
        ])
        self.assertEqual(code, 0)
        doc = json.loads(out)
        self.assertEqual(doc["data_hex"], sighash("global", "flip").hex())
        self.assertEqual(doc["accounts"][0]["pubkey"], address)
        self.assertTrue(doc["accounts"][0]["is_writable"])

    def test_new_accounts(self):
        code, out = _run([
            "encode", "--idl", FLIPPER, "-i", "new", "--data", "true",
            "--accounts", "new", "new", "system", "--program", PROGRAM_ID, "--output-json",
        ])
        self.assertEqual(code, 0)
        doc = json.loads(out)
        self.assertEqual(doc["data_hex"], "872ccdc6190148bc01")
        self.assertEqual([a["source"] for a in doc["accounts"]], ["new", "new", "system"])

    def test_encoding_error(self):
        code, out = _run([
            "encode", "--idl", FLIPPER, "-i", "new", "--data", "maybe",
            "--accounts", "new", "new", "system", "--program", PROGRAM_ID, "--output-json",
        ])
        self.assertEqual(code, 1)
        error = json.loads(out)["error"]
        self.assertEqual(error["kind"], "InvalidBoolLiteral")
        self.assertEqual(error["argument"], "initvalue")

    def test_account_count_error(self):
        code, out = _run([
            "encode", "--idl", FLIPPER, "-i", "new", "--data", "true",
            "--accounts", "new", "--program", PROGRAM_ID, "--output-json",
        ])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["kind"], "AccountCountMismatch")

    def test_program_required(self):
        code, out = _run(["encode", "--idl", FLIPPER, "-i", "get", "--accounts", "new", "--output-json"])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["kind"], "ConfigError")


class CallCommandTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.payer = Keypair()
        self.payer_file = write_keypair_file(self.payer, self.tmp / "payer.json")

        config_patch = patch(
            "solcall.cli.load_config",
            return_value=SolcallConfig(rpc_url="http://localhost:8899", keypair_path=str(self.payer_file)),
        )
        self.load_config = config_patch.start()
        self.addCleanup(config_patch.stop)

        transport_patch = patch("solcall.cli.RpcTransport")
        self.transport_cls = transport_patch.start()
        self.addCleanup(transport_patch.stop)

        self.transport = self.transport_cls.return_value.__enter__.return_value
        self.transport.get_latest_blockhash.return_value = Hash.default()
        self.transport.send_transaction.return_value = "5igSignature"
        self.transport.confirm_transaction.return_value = {"confirmationStatus": "confirmed", "err": None}
        self.transport.get_transaction.return_value = {"meta": {"logMessages": []}}

    def test_new_accounts_saved(self):
        keys = self.tmp / "keys"
        code, out = _run([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "new", "--data", "true",
            "--accounts", "new", "self", "system", "--keypair-dir", str(keys), "--output-json",
        ])
        self.assertEqual(code, 0)
        doc = json.loads(out)
        self.assertEqual(doc["signature"], "5igSignature")
        self.assertEqual(doc["accounts"][1]["pubkey"], str(self.payer.pubkey()))

        new_account, = doc["new_accounts"]
        file_name = Path(new_account["file_name"])
        self.assertEqual(file_name.name, f"dataAccount-{new_account['pubkey']}.json")
        self.assertEqual(str(load_keypair(file_name).pubkey()), new_account["pubkey"])

    def test_return_value(self):
        self.transport.get_transaction.return_value = {"meta": {
            "logMessages": [],
            "returnData": {"programId": PROGRAM_ID, "data": [base64.b64encode(b"\x01").decode(), "base64"]},
        }}
        code, out = _run([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "get",
            "--accounts", str(Keypair().pubkey()), "--output-json",
        ])
        self.assertEqual(code, 0)
        doc = json.loads(out)
        self.assertEqual(doc["decoded_return_data"], "true")
        self.assertEqual(doc["new_accounts"], [])

    def test_undecodable_return_value_fails(self):
        self.transport.get_transaction.return_value = {"meta": {
            "logMessages": [],
            "returnData": {"programId": PROGRAM_ID, "data": [base64.b64encode(b"\x09").decode(), "base64"]},
        }}
        code, out = _run([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "get",
            "--accounts", str(Keypair().pubkey()), "--output-json",
        ])
        self.assertEqual(code, 1)
        doc = json.loads(out)
        self.assertEqual(doc["signature"], "5igSignature")
        self.assertIn("return_error", doc)

    def test_nothing_sent_on_resolution_error(self):
        code, out = _run([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "new", "--data", "true",
            "--accounts", "new", "self", "--output-json",
        ])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["kind"], "AccountCountMismatch")
        self.transport.send_transaction.assert_not_called()

    def test_flags_reach_config(self):
        _run([
            "call", "--idl", FLIPPER, "--program", PROGRAM_ID, "-i", "flip",
            "--accounts", str(Keypair().pubkey()), "--timeout", "7", "-u", "devnet",
            "--payer", str(self.payer_file), "--output-json",
        ])
        self.load_config.assert_called_once_with(
            rpc_url="devnet",
            keypair_path=str(self.payer_file),
            commitment=None,
            confirm_timeout=7.0,
        )


if __name__ == "__main__":
    unittest.main()
