"""
Decides which images are built and which are pulled before an instance starts.
"""
from typing import List, Optional, Tuple
from ..MODELS.instance import ImageSource, ServiceRecord
from ..RUNNERS.docker_commands import ContainerCommands
from ..UTILS.console import ConsolePrinter

LOCAL_IMAGE_SOURCES = (ImageSource.BUILD, ImageSource.CACHE)


class ImageCoordinator:
    """
    Pulls registry images and triggers the local image build.
    """
    def __init__(self, commands: ContainerCommands, printer: Optional[ConsolePrinter] = None):
        """
        :param commands: Container runtime used to pull and build.
        :param printer: Output for progress messages.
        """
        self.commands = commands
        self.printer = printer or ConsolePrinter()

    @staticmethod
    def partition(services: List[ServiceRecord]) -> Tuple[List[ServiceRecord], List[ServiceRecord]]:
        """
        Splits services into those whose image must not be pulled and those pulled from a registry.
        Locally built and cached images are never overwritten by a pull.

        :param services: Declared services.
        :return: (skipped, pulled)
        """
        skipped = [s for s in services if s.image_source in LOCAL_IMAGE_SOURCES]
        pulled = [s for s in services if s.image_source not in LOCAL_IMAGE_SOURCES]
        return skipped, pulled

    def pull_images(self, services: List[ServiceRecord], skip_pull: bool = False) -> List[str]:
        """
        Pulls the images of all services that come from a registry.

        :param services: Declared services.
        :param skip_pull: Use the locally cached version of every image.
        :return: The image names that were pulled.
        :raises CommandError: If a pull fails.
        """
        if skip_pull:
            self.printer.info("'skipPull' argument supplied. Skipping Docker Repository Pull for all images. "
                              "Using locally cached version of images.")
            return []

        self.printer.bold("Pulling Docker images except for locally built images and images defined as "
                          "<skipPull> or <localBuild>.")
        skipped, pulled = self.partition(services)
        for service in skipped:
            self.printer.bold(f"Skipping Pull of image: {service.image_name}")

        images = []
        for service in pulled:
            self.printer.info(f"Pulling image: {service.image_name}")
            self.commands.pull(service.image_name)
            images.append(service.image_name)
        return images

    def build_image(self, manifest_path: str, no_build: bool = False, skip_build: bool = False) -> bool:
        """
        Builds the project's images unless building is disabled.

        :param manifest_path: Compose file describing what to build.
        :param no_build: The project never builds images.
        :param skip_build: Reuse the current local image for this run.
        :return: True if a build ran.
        :raises CommandError: If the build fails.
        """
        if no_build:
            return False
        if skip_build:
            self.printer.info("'skipBuild' argument supplied. Using the current local Docker image "
                              "instead of building a new one.")
            return False

        self.printer.bold("Building a new Docker image")
        self.commands.build(manifest_path)
        return True
