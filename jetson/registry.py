"""Declarative probe set for a Jetson Nano / JetPack image."""

from __future__ import annotations

import re
import sys
from typing import Callable

from config.controller import SelftestSettings
from diagnostics.models import DiagnosticStatus, Probe, Verdict
from diagnostics.registry import Registry, RegistryError
from jetson.cuda import CUDA_HOME, NVCC_PATH, CudaSmokeCheck
from probes.command import CommandCheck, Predicate, exit_zero, python_import_check
from probes.library import LibraryLoadCheck, Loader, SubprocessLoader
from probes.pattern import TextPatternCheck
from probes.presence import PresenceCheck, PresenceKind
from probes.shell import CommandOutput, CommandRunner, first_lines, run_command

FAIL = DiagnosticStatus.FAIL
WARN = DiagnosticStatus.WARN

# Check factory: (absence severity, timeout) -> callable producing a verdict.
CheckFactory = Callable[[DiagnosticStatus, float], Callable[[], Verdict]]

_TRT_TAG = re.compile(r"\[(TensorRT v\d+)\]")

TRTEXEC_PATHS = ("/usr/src/tensorrt/bin/trtexec", "/usr/bin/trtexec", "/usr/local/bin/trtexec")
DEVICE_QUERY_PATHS = (
    "/usr/local/cuda/samples/1_Utilities/deviceQuery/deviceQuery",
    "/usr/local/cuda-*/samples/1_Utilities/deviceQuery/deviceQuery",
    "/usr/bin/deviceQuery",
    "/usr/local/cuda/bin/deviceQuery",
)
GST_ELEMENTS = ("nvvidconv", "nvv4l2decoder", "nvv4l2h264enc")

OPENCV_BUILD_INFO = (
    "import cv2\n"
    "print(cv2.getBuildInformation())\n"
)


def _trtexec_predicate(output: CommandOutput) -> Verdict:
    head = output.combined.splitlines()[0] if output.combined else ""
    match = _TRT_TAG.search(head)
    tag = f"{match.group(1)}, " if match else ""
    return Verdict(
        status=DiagnosticStatus.PASS,
        message=f"trtexec present ({tag}rc={output.returncode})",
        detail="" if match else head,
    )


def _opencv_prelude(output: str, returncode: int) -> Verdict | None:
    if returncode != 0:
        return Verdict(
            status=DiagnosticStatus.FAIL,
            message="OpenCV build information unavailable (cv2 import failed)",
            detail=first_lines(output, limit=5),
        )
    return None


def _disabled(name: str) -> Callable[[], Verdict]:
    def _skip() -> Verdict:
        return Verdict(status=DiagnosticStatus.SKIP, message="disabled by configuration")

    _skip.__name__ = f"disabled_{name}"
    return _skip


class _Declarations:
    """Collects probe declarations and applies per-probe settings."""

    def __init__(self, settings: SelftestSettings) -> None:
        self.settings = settings
        self.registry = Registry()

    def probe(
        self,
        name: str,
        section: str,
        default_severity: DiagnosticStatus,
        factory: CheckFactory,
        description: str = "",
    ) -> None:
        severity = self.settings.severity_for(name, default_severity)
        timeout_s = self.settings.timeout_for(name)
        if self.settings.is_enabled(name):
            action = factory(severity, timeout_s)
        else:
            action = _disabled(name)
        self.registry.add(
            Probe(
                name=name,
                section=section,
                action=action,
                timeout_s=timeout_s,
                description=description,
            )
        )


def build_registry(
    settings: SelftestSettings | None = None,
    *,
    runner: CommandRunner = run_command,
    loader: Loader | None = None,
) -> Registry:
    """Declare every Jetson probe, apply overrides and section filters.

    Raises ``RegistryError`` for overrides naming unknown probes or unknown
    section filters, before any probe has run.
    """

    settings = settings or SelftestSettings()
    decl = _Declarations(settings)

    def library(candidates: tuple[str, ...], label: str) -> CheckFactory:
        def _make(severity: DiagnosticStatus, timeout_s: float) -> LibraryLoadCheck:
            return LibraryLoadCheck(
                candidates=candidates,
                label=label,
                missing_status=severity,
                timeout_s=timeout_s,
                loader=loader or SubprocessLoader(runner=runner),
            )

        return _make

    def packages(
        patterns: tuple[str, ...],
        label: str,
        hint: str = "",
        ignore_case: bool = False,
    ) -> CheckFactory:
        def _make(severity: DiagnosticStatus, timeout_s: float) -> PresenceCheck:
            return PresenceCheck(
                kind=PresenceKind.PACKAGE,
                targets=patterns,
                label=label,
                missing_status=severity,
                missing_hint=hint,
                ignore_case=ignore_case,
                timeout_s=timeout_s,
                runner=runner,
            )

        return _make

    def command(
        executables: tuple[str, ...],
        args: tuple[str, ...],
        label: str,
        predicate: Predicate = exit_zero,
    ) -> CheckFactory:
        def _make(severity: DiagnosticStatus, timeout_s: float) -> CommandCheck:
            return CommandCheck(
                executables=executables,
                args=args,
                label=label,
                missing_status=severity,
                failure_status=severity,
                predicate=predicate,
                timeout_s=timeout_s,
                runner=runner,
            )

        return _make

    def python_import(module: str, label: str) -> CheckFactory:
        def _make(severity: DiagnosticStatus, timeout_s: float) -> CommandCheck:
            return python_import_check(
                module, label, timeout_s=timeout_s, failure_status=severity, runner=runner
            )

        return _make

    # System / L4T
    decl.probe(
        "l4t-release", "System", FAIL,
        lambda severity, timeout_s: PresenceCheck(
            kind=PresenceKind.FILE,
            targets=("/etc/nv_tegra_release",),
            label="L4T release file",
            missing_status=severity,
            missing_hint="Jetson Linux / L4T not detected",
            show_contents=True,
        ),
        "Jetson Linux release file",
    )
    decl.probe("kernel", "System", WARN, command(("uname",), ("-a",), "Kernel version"))
    decl.probe(
        "l4t-packages", "System", WARN,
        packages(
            ("nvidia-l4t-core", "nvidia-l4t-kernel", "nvidia-l4t-bootloader"),
            "Core NVIDIA L4T",
            hint="package naming may differ",
        ),
    )

    # CUDA
    decl.probe(
        "cuda-toolkit", "CUDA", FAIL,
        lambda severity, timeout_s: PresenceCheck(
            kind=PresenceKind.FILE,
            targets=(str(CUDA_HOME / "version.txt"), str(CUDA_HOME / "version.json")),
            label="CUDA toolkit",
            missing_status=severity,
            show_contents=True,
        ),
        "CUDA toolkit on disk, independent of PATH",
    )
    decl.probe("nvcc", "CUDA", FAIL, command((str(NVCC_PATH),), ("--version",), "nvcc"))
    decl.probe(
        "cuda-smoke", "CUDA", FAIL,
        lambda severity, timeout_s: CudaSmokeCheck(timeout_s=timeout_s, runner=runner),
        "Compile and run a minimal device query",
    )
    decl.probe(
        "device-query", "CUDA", WARN,
        command(DEVICE_QUERY_PATHS, (), "cuda-samples deviceQuery"),
    )

    # cuDNN
    decl.probe("cudnn-packages", "cuDNN", WARN, packages(("libcudnn8", "libcudnn"), "cuDNN"))
    decl.probe("cudnn-library", "cuDNN", FAIL, library(("libcudnn.so.8", "libcudnn.so"), "cuDNN"))

    # TensorRT
    decl.probe(
        "trtexec", "TensorRT", WARN,
        command(TRTEXEC_PATHS, ("--help",), "trtexec", predicate=_trtexec_predicate),
        "trtexec may exit non-zero for --help; presence is what counts",
    )
    decl.probe("tensorrt-python", "TensorRT", FAIL, python_import("tensorrt", "TensorRT"))
    decl.probe(
        "tensorrt-library", "TensorRT", FAIL,
        library(("libnvinfer.so.8", "libnvinfer.so"), "TensorRT"),
    )

    # VPI
    decl.probe("vpi-packages", "VPI", WARN, packages(("vpi", "libnvvpi"), "VPI"))
    decl.probe("vpi-python", "VPI", FAIL, python_import("vpi", "VPI"))
    decl.probe("vpi-library", "VPI", WARN, library(("libnvvpi.so.1", "libnvvpi.so"), "VPI"))
    decl.probe(
        "vpi-samples", "VPI", WARN,
        lambda severity, timeout_s: PresenceCheck(
            kind=PresenceKind.DIRECTORY,
            targets=("/opt/nvidia/vpi1/samples",),
            label="VPI sample sources",
            missing_status=severity,
        ),
    )

    # OpenCV
    decl.probe("opencv-python", "OpenCV", FAIL, python_import("cv2", "OpenCV"))
    decl.probe(
        "opencv-cuda", "OpenCV", FAIL,
        lambda severity, timeout_s: TextPatternCheck(
            executables=(sys.executable,),
            args=("-c", OPENCV_BUILD_INFO),
            label="OpenCV CUDA",
            flag=r"(NVIDIA CUDA|Use CUDA)",
            missing_status=severity,
            tool_missing_status=severity,
            prelude=_opencv_prelude,
            timeout_s=timeout_s,
            runner=runner,
        ),
        "Only an explicit YES in the build information passes",
    )

    # VisionWorks
    decl.probe(
        "visionworks-packages", "VisionWorks", WARN,
        packages(
            ("visionworks", "libvisionworks"),
            "VisionWorks",
            hint="may not have been part of the SDK selection",
        ),
    )

    # GStreamer
    decl.probe(
        "gst-inspect", "GStreamer", WARN,
        lambda severity, timeout_s: PresenceCheck(
            kind=PresenceKind.EXECUTABLE,
            targets=("gst-inspect-1.0",),
            label="GStreamer (gst-inspect-1.0)",
            missing_status=severity,
        ),
    )
    for element in GST_ELEMENTS:
        decl.probe(
            f"gst-{element}", "GStreamer", WARN,
            command(("gst-inspect-1.0",), (element,), f"gst element {element}"),
        )

    # Containers
    decl.probe("docker", "Containers", WARN, command(("docker",), ("--version",), "docker"))
    decl.probe(
        "docker-nvidia-runtime", "Containers", WARN,
        lambda severity, timeout_s: TextPatternCheck(
            executables=("docker",),
            args=("info",),
            label="NVIDIA runtime in docker info",
            needle="nvidia",
            missing_status=severity,
            tool_missing_status=severity,
            timeout_s=timeout_s,
            runner=runner,
        ),
    )
    decl.probe(
        "nvidia-container-cli", "Containers", WARN,
        command(("nvidia-container-cli",), ("--version",), "nvidia-container-cli"),
    )

    # Optional SDKs
    decl.probe(
        "deepstream", "Optional SDKs", WARN,
        command(("deepstream-app",), ("--version-all",), "DeepStream"),
    )
    decl.probe(
        "triton-packages", "Optional SDKs", WARN,
        packages(("triton", "libtritonserver"), "Triton", ignore_case=True),
    )

    unknown = sorted(set(settings.probes) - set(decl.registry.names()))
    if unknown:
        raise RegistryError(f"Configuration overrides unknown probe(s): {', '.join(unknown)}")

    return decl.registry.filter_sections(settings.sections)
