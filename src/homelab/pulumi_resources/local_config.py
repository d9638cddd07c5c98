import pathlib
import shlex

import pulumi
from pulumi_command import local

import homelab.junkdrawer
import homelab.paths


def write_file_command(path: pathlib.Path) -> str:
    """Shell command that writes stdin to ``path``, creating its directory."""
    return f"mkdir -p {shlex.quote(str(path.parent))} && cat > {shlex.quote(str(path))}"


class LocalConfigFiles(pulumi.ComponentResource):
    """Writes talosconfig and kubeconfig to disk for talosctl and kubectl.

    Each file is triggered by the sha256 of its content, so a run with
    unchanged content leaves the file alone.
    """

    name: str
    paths: homelab.paths.Paths

    talosconfig: local.Command
    kubeconfig: local.Command

    def __init__(
        self,
        name: str,
        talosconfig: pulumi.Input[str],
        kubeconfig: pulumi.Input[str],
        paths: homelab.paths.Paths | None = None,
        *args,
        **kwargs,
    ):
        super().__init__(
            f"homelab:{self.__class__.__name__}",
            name,
            *args,
            **kwargs,
        )

        self.name = name
        self.paths = paths or homelab.paths.Paths()

        self.talosconfig = self._define_file("talosconfig", self.paths.talosconfig, talosconfig)
        self.kubeconfig = self._define_file("kubeconfig", self.paths.kubeconfig, kubeconfig)

        self.register_outputs({})

    def _define_file(self, label: str, path: pathlib.Path, content: pulumi.Input[str]) -> local.Command:
        content_output = pulumi.Output.from_input(content)

        return local.Command(
            f"{self.name}-write-{label}",
            create=write_file_command(path),
            stdin=content_output,
            triggers=[content_output.apply(homelab.junkdrawer.text_signature)],
            opts=pulumi.ResourceOptions(parent=self),
        )
