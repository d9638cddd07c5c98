from __future__ import annotations

import os
import pathlib

HERE = pathlib.Path(__file__).absolute().parent

TALOSCONFIG_FILENAME = "talosconfig"
KUBECONFIG_FILENAME = "kubeconfig"


class Paths:
    @property
    def manifests(self) -> pathlib.Path:
        return HERE / "manifests"

    @property
    def argocd_values(self) -> pathlib.Path:
        return self.manifests / "argocd" / "argocd-values.yaml"

    @property
    def argocd_root_app(self) -> pathlib.Path:
        return self.manifests / "argocd" / "root-app.yaml"

    @property
    def talos_dir(self) -> pathlib.Path:
        """Return the directory client configs are written to.

        Relative to the Pulumi working directory unless HOMELAB_TALOS_DIR
        is set in the environment.
        """
        if "HOMELAB_TALOS_DIR" in os.environ:
            return pathlib.Path(os.environ["HOMELAB_TALOS_DIR"])

        return pathlib.Path(".talos")

    @property
    def talosconfig(self) -> pathlib.Path:
        return self.talos_dir / TALOSCONFIG_FILENAME

    @property
    def kubeconfig(self) -> pathlib.Path:
        return self.talos_dir / KUBECONFIG_FILENAME
