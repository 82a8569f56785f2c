import unittest
import os
import socket
import subprocess
import sys
import time

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SCRIPT = os.path.join(ROOT, "examples", "socket_accept.py")


def free_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def run_script(*args, timeout: float = 10):
    return subprocess.run([sys.executable, SCRIPT, *args], capture_output=True, text=True,
                          timeout=timeout, cwd=ROOT)


class TestSocketAcceptScript(unittest.TestCase):
    def test_timeout_exits_nonzero(self):
        completed = run_script("-b", "127.0.0.1", "-t", "0", "0")

        self.assertEqual(completed.returncode, 1)
        self.assertIn("timed out", completed.stderr)
        self.assertNotIn("ACCEPT_FD=", completed.stdout)

    def test_invalid_timeout_exits_nonzero(self):
        completed = run_script("-t", "-1", "0")

        self.assertEqual(completed.returncode, 1)
        self.assertIn("-1: invalid timeout specification", completed.stderr)

    def test_invalid_port_exits_nonzero(self):
        completed = run_script("70000")

        self.assertEqual(completed.returncode, 1)
        self.assertIn("70000: invalid port number", completed.stderr)

    def test_missing_port_is_usage_error(self):
        completed = run_script()
        self.assertEqual(completed.returncode, 2)

    def test_connection_exits_zero_and_prints_bindings(self):
        port = free_port()
        process = subprocess.Popen(
            [sys.executable, SCRIPT, "-b", "127.0.0.1", "-t", "10", "-v", "CONN", "-r", "RHOST", str(port)],
            stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, cwd=ROOT)
        try:
            client = None
            deadline = time.monotonic() + 10
            while client is None and time.monotonic() < deadline:
                try:
                    client = socket.create_connection(("127.0.0.1", port), timeout=1)
                except OSError:
                    time.sleep(0.05)
            self.assertIsNotNone(client, "script never started listening")
            client.close()
            stdout, stderr = process.communicate(timeout=10)
        finally:
            if process.poll() is None:
                process.kill()
                process.communicate()

        self.assertEqual(process.returncode, 0, stderr)
        self.assertIn("CONN=", stdout)
        self.assertIn("RHOST=127.0.0.1", stdout)


if __name__ == '__main__':
    unittest.main()
