#!/usr/bin/env python3
"""
Flask web application for the Droplist Landed Cost Calculator
"""

import logging
import traceback
from datetime import datetime

from flask import Flask, request, jsonify
from flask_cors import CORS

import config
from droplist import DroplistFetcher, format_drop_date
from errors import FetchFailed, InvalidInput, NoEntriesFound, RateUnavailable
from landed_cost import DUTY_RATE, LandedCostCalculator, summarize_cart

logger = logging.getLogger(__name__)

app = Flask(__name__)

# The front-end is a static page hosted elsewhere
CORS(app)


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def _server_error(e):
    logger.exception("Unhandled error in %s", request.path)
    return jsonify({
        'success': False,
        'error': str(e),
        'traceback': traceback.format_exc()
    }), 500


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


@app.route('/calculate', methods=['POST'])
def calculate():
    """Landed cost in CAD for a comma-separated list of USD prices"""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        calculator = LandedCostCalculator()
        breakdown = calculator.calculate(data.get('prices', ''))

        result = {
            'success': True,
            'duty_rate': DUTY_RATE,
            'message': 'Calculation updated with live rates.',
        }
        result.update(breakdown.to_dict())
        return jsonify(result)

    except InvalidInput as e:
        return _error(e.message, 400)
    except RateUnavailable as e:
        return _error(e.message, 503)
    except Exception as e:
        return _server_error(e)


@app.route('/droplist', methods=['GET'])
def droplist():
    """Upcoming droplist items, each with its own fees, plus cart totals"""
    try:
        reference = None
        raw_date = request.args.get('date', '').strip()
        if raw_date:
            try:
                reference = datetime.strptime(raw_date, '%Y-%m-%d').date()
            except ValueError:
                return _error('Date must look like YYYY-MM-DD.', 400)

        conversion_rate = LandedCostCalculator().get_conversion_rate()
        snapshot = DroplistFetcher().fetch_snapshot(reference)
        summary = summarize_cart([item.price_usd for item in snapshot.items], conversion_rate)

        items = []
        for item, fees in zip(snapshot.items, summary.items):
            entry = item.to_dict()
            entry['fees'] = fees.to_dict()
            items.append(entry)

        drop_date = snapshot.retrieved_for_date
        return jsonify({
            'success': True,
            'date': drop_date.isoformat(),
            'season': snapshot.season_label,
            'source': snapshot.source_url,
            'items': items,
            'count': summary.count,
            'cart': summary.cart.to_dict(),
            'message': (
                f"Droplist for {format_drop_date(drop_date)} "
                f"({snapshot.season_label}) loaded. Source: {snapshot.source_url}"
            ),
        })

    except RateUnavailable as e:
        return _error(f"Could not load droplist data right now. {e.message}", 503)
    except NoEntriesFound as e:
        return _error(f"Could not load droplist data right now. {e.message}", 404)
    except FetchFailed as e:
        return _error(f"Could not load droplist data right now. {e.message}", 502)
    except Exception as e:
        return _server_error(e)


if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    app.run(debug=config.FLASK_DEBUG, host=config.FLASK_HOST, port=config.FLASK_PORT)
