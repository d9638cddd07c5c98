import pulumi

import homelab.stack

stack = homelab.stack.HomelabStack.autoload()

for key, value in stack.outputs.items():
    pulumi.export(key, value)
