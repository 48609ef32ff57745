"""CUDA compile-and-run smoke test."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import subprocess
import tempfile
import time

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus, Verdict
from probes.shell import CommandRunner, first_lines, is_executable, run_command, tail_line

CUDA_HOME = Path("/usr/local/cuda")
NVCC_PATH = CUDA_HOME / "bin" / "nvcc"

SMOKE_SOURCE = r"""#include <cstdio>
#include <cuda_runtime.h>
int main() {
  int n = 0;
  cudaError_t e = cudaGetDeviceCount(&n);
  if (e != cudaSuccess) { printf("cudaGetDeviceCount error: %s\n", cudaGetErrorString(e)); return 2; }
  printf("CUDA devices: %d\n", n);
  if (n < 1) return 3;
  cudaDeviceProp p{};
  cudaGetDeviceProperties(&p, 0);
  printf("Device0: %s, cc %d.%d\n", p.name, p.major, p.minor);
  return 0;
}
"""


def _remaining(deadline: float) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise subprocess.TimeoutExpired(cmd="cuda smoke test", timeout=0)
    return remaining


@dataclass(frozen=True)
class CudaSmokeCheck:
    """Compile a minimal device query with nvcc and run it.

    Works in a private temporary directory, so it touches nothing that other
    probes inspect. Compile and run share one ``timeout_s`` budget.
    """

    nvcc: str = str(NVCC_PATH)
    timeout_s: float = DEFAULT_TIMEOUT_S
    runner: CommandRunner = field(default=run_command, repr=False)

    def __call__(self) -> Verdict:
        if not is_executable(self.nvcc):
            return Verdict(
                status=DiagnosticStatus.SKIP,
                message=f"nvcc not usable at {self.nvcc}; compile/run test skipped",
            )

        deadline = time.monotonic() + self.timeout_s
        with tempfile.TemporaryDirectory(prefix="cuda-smoke-") as tmp:
            source = Path(tmp) / "cuda_smoke.cu"
            binary = Path(tmp) / "cuda_smoke"
            source.write_text(SMOKE_SOURCE, encoding="utf-8")

            try:
                compiled = self.runner(
                    (self.nvcc, "-O2", str(source), "-o", str(binary)),
                    _remaining(deadline),
                )
                if not compiled.ok:
                    return Verdict(
                        status=DiagnosticStatus.FAIL,
                        message="CUDA compilation failed (toolchain broken?)",
                        detail=first_lines(compiled.combined, limit=20),
                    )
                ran = self.runner((str(binary),), _remaining(deadline))
            except subprocess.TimeoutExpired:
                return Verdict(
                    status=DiagnosticStatus.FAIL,
                    message=f"CUDA smoke test timed out after {int(self.timeout_s * 1000)}ms",
                )
            except OSError as exc:
                return Verdict(
                    status=DiagnosticStatus.FAIL,
                    message=f"CUDA smoke test could not execute: {exc}",
                )

        if not ran.ok:
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=(
                    f"CUDA runtime program failed (rc={ran.returncode}): "
                    f"{tail_line(ran.stdout) or 'driver/runtime broken?'}"
                ),
                detail=first_lines(ran.combined),
            )
        return Verdict(
            status=DiagnosticStatus.PASS,
            message="CUDA runtime OK (compile + device query)",
            detail=first_lines(ran.stdout),
        )
