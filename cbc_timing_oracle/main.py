import json
import os
import sys
from datetime import datetime
from pathlib import Path

import yaml
from dotenv import load_dotenv

from cbc_timing_oracle.attack.padding_oracle_attacker import (
    AttackConfig, PaddingOracleAttacker, UndecidedPolicy
)
from cbc_timing_oracle.core.exceptions import (
    AttackFailedException, ConfigurationError, PreconditionViolationException,
    TimingAttackException
)
from cbc_timing_oracle.services.clock_service import SimulatedClock, SystemClock
from cbc_timing_oracle.services.oracle_service import OracleConfig, new_oracle
from cbc_timing_oracle.services.random_service import NumpyRandomSource
from cbc_timing_oracle.services.sprt_service import SPRTConfig
from cbc_timing_oracle.utils.logger import Logger


RESULTS_FILE = "attack_results.json"
DEFAULT_CONFIG_PATH = "config/config.yaml"


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML config: {str(e)}")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file is empty or not a mapping: {config_path}")
    for section in ('oracle', 'sprt', 'attack', 'logging'):
        if section not in config:
            raise ConfigurationError(f"Missing config section: '{section}'")
    return config


def build_oracle_config(config: dict) -> OracleConfig:
    oracle = config['oracle']
    return OracleConfig(
        block_size=int(oracle['block_size']),
        valid_delay=float(oracle['valid_delay']),
        invalid_delay=float(oracle['invalid_delay']),
        jitter=float(oracle['jitter']),
        key_byte=int(oracle['key_byte'])
    )


def build_sprt_config(config: dict) -> SPRTConfig:
    sprt = config['sprt']
    return SPRTConfig(
        mean_valid=float(sprt['mean_valid']),
        mean_invalid=float(sprt['mean_invalid']),
        sigma=float(sprt['sigma']),
        accept_threshold=float(sprt['accept_threshold']),
        reject_threshold=float(sprt['reject_threshold']),
        max_attempts=int(sprt['max_attempts'])
    )


def build_attack_config(config: dict) -> AttackConfig:
    policy = str(config['attack'].get('undecided_policy', 'reject')).lower()
    try:
        return AttackConfig(undecided_policy=UndecidedPolicy(policy))
    except ValueError:
        raise ConfigurationError(f"Unknown undecided_policy: '{policy}'")


def random_seed(config: dict):
    seed = os.environ.get('RANDOM_SEED', config['attack'].get('random_seed'))
    if seed is None or seed == '':
        return None
    try:
        return int(seed)
    except ValueError:
        raise ConfigurationError(f"RANDOM_SEED must be an integer, got '{seed}'")


def use_simulated_clock(config: dict) -> bool:
    value = os.environ.get('USE_SIMULATED_CLOCK')
    if value is None:
        return bool(config['attack'].get('simulated_clock', True))
    return value.lower() == 'true'


def save_result(secret_length: int, recovered: str, elapsed_time: float,
                queries: int, success: bool):
    results = load_results()
    results.append({
        "recovered": recovered,
        "length": secret_length,
        "time_seconds": round(elapsed_time, 2),
        "queries": queries,
        "success": success,
        "timestamp": datetime.now().isoformat()
    })

    with open(RESULTS_FILE, 'w') as f:
        json.dump(results, f, indent=2)


def load_results():
    if not Path(RESULTS_FILE).exists():
        return []
    try:
        with open(RESULTS_FILE, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return []


def view_history():
    results = load_results()

    print(f"\n{'='*60}")
    print("Attack History")
    print(f"{'='*60}\n")

    if not results:
        print("No previous attacks found.\n")
        return

    for i, result in enumerate(results, 1):
        timestamp = datetime.fromisoformat(result['timestamp']).strftime("%Y-%m-%d %H:%M:%S")
        status = "OK" if result['success'] else "MISMATCH"
        print(f"{i}. [{timestamp}] {status}")
        print(f"   Recovered: {result['recovered']} ({result['length']} bytes)")
        print(f"   Time: {result['time_seconds']}s | Queries: {result['queries']}")
        print()


def print_progress(block_index: int, position: int, value: int):
    if position == 0:
        print(f"{value:02x}", flush=True)
    else:
        print(f"{value:02x} ", end="", flush=True)


def run_attack(config: dict, logger: Logger):
    secret = os.environ.get('SECRET_MESSAGE') or config['attack'].get('secret')
    if not secret:
        secret = input("Enter secret message: ")
        if not secret:
            print("Secret required!")
            return

    oracle_config = build_oracle_config(config)
    clock = SimulatedClock() if use_simulated_clock(config) else SystemClock()
    seed = random_seed(config)

    oracle = new_oracle(
        secret,
        config=oracle_config,
        clock=clock,
        random_source=NumpyRandomSource(seed),
        logger=logger
    )

    print(f"\n{'='*60}")
    print("CBC-PAD Timing Attack Simulation")
    print(f"{'='*60}")
    print("Target Secret: [Redacted]")
    print(f"Block Size: {oracle.block_size} bytes ({oracle.num_blocks} blocks)")
    print(f"Clock: {type(clock).__name__}")
    print(f"{'='*60}\n")

    attacker = PaddingOracleAttacker(
        oracle,
        sprt_config=build_sprt_config(config),
        attack_config=build_attack_config(config),
        random_source=NumpyRandomSource(None if seed is None else seed + 1),
        logger=logger,
        progress_callback=print_progress
    )

    start_time = clock.now()
    try:
        report = attacker.recover_message()
    except AttackFailedException as e:
        save_result(len(secret.encode('utf-8')), "", clock.now() - start_time,
                    attacker.stats.total_queries, False)
        print(f"\n{'='*60}")
        print(f"[-] ATTACK FAILED: {str(e)}")
        print(f"{'='*60}")
        print("Random IV filler can make a wrong last-byte guess decrypt to a")
        print("short valid padding (e.g. '.. 01 01'), in which case the next")
        print("byte of the block has no valid candidate. Run the attack again")
        print("or set RANDOM_SEED to pick a different filler sequence.")
        print(f"{'='*60}\n")
        return

    recovered_text = report.plaintext.decode('utf-8', errors='replace')
    success = report.plaintext == secret.encode('utf-8')

    save_result(len(report.plaintext), recovered_text, report.elapsed_time,
                report.total_queries, success)

    print(f"\n{'='*60}")
    print("[+] ATTACK COMPLETE")
    print(f"{'='*60}")
    print(f"Recovered Hex: {report.recovered.hex()}")
    print(f"Recovered Text: {recovered_text}")
    print(f"Queries: {report.total_queries}")
    print(f"Time: {report.elapsed_time:.2f} seconds on {type(clock).__name__} "
          f"({report.total_latency:.2f}s waiting on the oracle)")
    ci_lower, ci_upper = report.accepted_interval
    print(f"Valid padding latency: {report.accepted.mean * 1000:.3f}ms "
          f"(95% CI {ci_lower * 1000:.3f}-{ci_upper * 1000:.3f}ms, "
          f"n={report.accepted.count})")
    print(f"Invalid padding latency: {report.rejected.mean * 1000:.3f}ms "
          f"(n={report.rejected.count})")
    print(f"Separation p-value: {report.p_value:.3g}")
    print("SUCCESS: Secret matches!" if success else "FAILED: Secret mismatch")
    print(f"{'='*60}\n")


def check_padding_menu(config: dict, logger: Logger):
    secret = input("\nEnter secret message: ")
    iv_hex = input("Enter IV (hex): ").strip()
    block_hex = input("Enter ciphertext block (hex): ").strip()

    oracle = new_oracle(secret, config=build_oracle_config(config),
                        clock=SimulatedClock(), logger=logger)
    try:
        iv = bytes.fromhex(iv_hex)
        block = bytes.fromhex(block_hex)
        valid = oracle.is_padding_valid(iv, block)
        latency = oracle.query(iv, block)
    except (ValueError, PreconditionViolationException) as e:
        print(f"\nInvalid input: {str(e)}")
        return

    print(f"\n{'='*60}")
    print(f"Padding: {'VALID' if valid else 'INVALID'}")
    print(f"Simulated response time: {latency * 1000:.3f}ms")
    print(f"{'='*60}\n")


def show_menu():
    print(f"\n{'='*60}")
    print("PADDING ORACLE TIMING ATTACK - INTERACTIVE MENU")
    print(f"{'='*60}")
    print("1. Start New Attack")
    print("2. View Attack History")
    print("3. Check Padding")
    print("4. Exit")
    print(f"{'='*60}")


def main():
    load_dotenv()

    try:
        config = load_config(os.environ.get('CONFIG_PATH', DEFAULT_CONFIG_PATH))
        logger = Logger(
            name="PaddingOracle",
            level=os.environ.get('LOG_LEVEL', config['logging']['level']),
            log_file=config['logging'].get('file'),
            console=config['logging']['console']
        )

        while True:
            show_menu()
            choice = input("\nSelect option (1-4): ").strip()

            if choice == '1':
                run_attack(config, logger)
            elif choice == '2':
                view_history()
            elif choice == '3':
                check_padding_menu(config, logger)
            elif choice == '4':
                print("\nExiting...\n")
                break
            else:
                print("\nInvalid option! Please select 1-4.")

        return 0

    except ConfigurationError as e:
        print(f"Configuration error: {str(e)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nExiting...\n")
        return 0
    except TimingAttackException as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 3
    except Exception as e:
        print(f"Unexpected error: {str(e)}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 3


if __name__ == "__main__":
    sys.exit(main())
