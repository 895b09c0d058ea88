"""Template written by ``wakeshell init``."""

CONFIG_TEMPLATE = """\
# wakeshell configuration
#
# Values under `defaults` apply to every run. Sections under `machines`
# override them and are selected with `wakeshell connect --machine NAME`.
# Credentials left unset fall back to the standard AWS credential chain.

vars:
  team: dev

defaults:
  region: us-east-1
  name_prefix: ${team}-box-
  name_suffix: ""
  ssh_username: ubuntu
  max_attempts: 5
  initial_delay: 10

machines:
  gpu:
    name_prefix: ${team}-gpu-
    identity_file: ~/.ssh/gpu-box.pem
"""
