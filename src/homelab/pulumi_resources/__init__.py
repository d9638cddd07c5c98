import typing

import pulumi

SecretInput = str | pulumi.Output[str]


def after(resource: pulumi.CustomResource, value: pulumi.Input[str]) -> pulumi.Output[str]:
    """Return ``value`` once ``resource`` has been created.

    For inputs that must wait on a resource they do not otherwise reference.
    """
    return pulumi.Output.all(resource.id, value).apply(lambda args: typing.cast(str, args[1]))
