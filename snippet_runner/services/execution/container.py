"""
Docker-based process isolation shared by the JavaScript and Python runners.
Runs a single command in a throwaway container with strict resource limits.
"""

import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import docker

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutput:
    """Raw outcome of one sandboxed process"""
    stdout: str
    stderr: str
    exit_code: int
    execution_time: float = 0.0
    timed_out: bool = False
    truncated: bool = False


class ContainerSandbox:
    """
    Executes one command in an isolated Docker container.

    Security Features:
    - Network disabled
    - Memory limit: 128MB
    - CPU limit: 50% of one core
    - Wall-clock timeout with forced removal
    - Read-only filesystem (except /tmp)
    """

    def __init__(
        self,
        image_name: str,
        memory_limit: str = "128m",
        cpu_quota: int = 50000,
        timeout: float = 5,
        client: Optional[Any] = None,
    ):
        self.image_name = image_name
        self.memory_limit = memory_limit
        self.cpu_quota = cpu_quota
        self.timeout = timeout

        if client is not None:
            self.client = client
            return
        try:
            self.client = docker.from_env()
            self.client.ping()
            logger.info(f"Docker client initialized for image {image_name}")
        except docker.errors.DockerException as e:
            logger.error(f"Failed to initialize Docker client: {e}")
            raise ConfigurationError(
                "Docker is not available. Please ensure Docker is installed and running."
            ) from e

    def run(self, command: List[str], environment: Optional[Dict[str, str]] = None) -> ProcessOutput:
        """
        Run ``command`` to completion in a fresh container.

        Raises:
            ConfigurationError: the sandbox image is missing
        """
        start_time = time.time()
        try:
            container = self.client.containers.run(
                self.image_name,
                command=command,
                detach=True,
                remove=False,
                mem_limit=self.memory_limit,
                cpu_quota=self.cpu_quota,
                network_disabled=True,
                read_only=True,
                tmpfs={"/tmp": "size=10M,mode=1777"},
                working_dir="/tmp",
                environment=environment or {},
            )
        except docker.errors.ImageNotFound as e:
            logger.error(f"Docker image not found: {self.image_name}")
            raise ConfigurationError(
                f"Sandbox image {self.image_name} is not available. Please contact administrator."
            ) from e

        try:
            try:
                result = container.wait(timeout=self.timeout)
            except Exception as e:
                execution_time = time.time() - start_time
                if execution_time >= self.timeout:
                    logger.warning(f"Container timeout after {execution_time:.3f}s")
                    container.stop(timeout=0)
                    return ProcessOutput(
                        stdout="",
                        stderr="",
                        exit_code=-1,
                        execution_time=execution_time,
                        timed_out=True,
                    )
                raise

            stdout = container.logs(stdout=True, stderr=False).decode("utf-8", errors="replace")
            stderr = container.logs(stdout=False, stderr=True).decode("utf-8", errors="replace")
        finally:
            container.remove(force=True)

        execution_time = time.time() - start_time
        exit_code = result["StatusCode"]
        logger.info(f"Container exited with {exit_code} in {execution_time:.3f}s")

        return ProcessOutput(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            execution_time=execution_time,
        )

    def health_check(self) -> Dict[str, Any]:
        """
        Check if Docker is healthy and the sandbox image is available.
        """
        try:
            self.client.ping()

            try:
                self.client.images.get(self.image_name)
                image_available = True
            except docker.errors.ImageNotFound:
                image_available = False

            return {
                "status": "healthy" if image_available else "degraded",
                "docker_available": True,
                "image_available": image_available,
                "image_name": self.image_name,
                "resource_limits": {
                    "memory": self.memory_limit,
                    "cpu_quota": self.cpu_quota,
                    "timeout": self.timeout,
                },
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "docker_available": False,
                "error": str(e),
            }
