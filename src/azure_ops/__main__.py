from azure_ops.cli import run_entrypoint

run_entrypoint()
