from dlp_gate.cli import cli

if __name__ == '__main__':
    cli(prog_name="dlp-gate")
